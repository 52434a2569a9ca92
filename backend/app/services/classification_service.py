"""
Classification service.

Owns the process-wide GarmentAnalyzer (and its worker pool) and one
ClassificationSession per client, so a client's new request supersedes its
own in-flight run without affecting other clients.
"""
import logging
import threading
from typing import Dict, Optional

from app.core.config import settings
from app.cv.garment_analyzer import (
    ClassificationOutcome,
    ClassificationSession,
    ClassificationState,
    GarmentAnalyzer,
    create_garment_analyzer,
)

logger = logging.getLogger(__name__)

DEFAULT_CLIENT = "default"


class ClassificationService:
    """Routes classification requests to per-client sessions."""

    def __init__(
        self,
        analyzer: Optional[GarmentAnalyzer] = None,
        timeout: Optional[float] = None,
        min_confidence: Optional[float] = None,
        max_sessions: int = 256,
    ):
        """
        Initialize classification service.

        Args:
            analyzer: Shared analyzer (creates default if None)
            timeout: Per-request budget in seconds (defaults to settings)
            min_confidence: Acceptance threshold (defaults to settings)
            max_sessions: Idle sessions beyond this count are dropped
        """
        self.analyzer = analyzer or create_garment_analyzer(settings.ANALYSIS_MAX_WORKERS)
        self.timeout = settings.ANALYSIS_TIMEOUT_SECONDS if timeout is None else timeout
        self.min_confidence = settings.ANALYSIS_MIN_CONFIDENCE if min_confidence is None else min_confidence
        self.max_sessions = max_sessions

        self._sessions: Dict[str, ClassificationSession] = {}
        self._lock = threading.Lock()

    def session(self, client_id: Optional[str] = None) -> ClassificationSession:
        """Get (or create) the session for a client."""
        key = client_id or DEFAULT_CLIENT
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                if len(self._sessions) >= self.max_sessions:
                    self._evict_idle()
                session = ClassificationSession(self.analyzer, self.timeout, self.min_confidence)
                self._sessions[key] = session
            return session

    def classify(self, image: bytes, client_id: Optional[str] = None) -> ClassificationOutcome:
        """Classify image bytes in the client's session."""
        outcome = self.session(client_id).classify(image)
        logger.info(f"Classification for client {client_id or DEFAULT_CLIENT!r}: {outcome.state.value}")
        return outcome

    def cancel(self, client_id: Optional[str] = None) -> bool:
        """
        Cancel the client's in-flight run.

        Returns:
            False if the client has no session
        """
        with self._lock:
            session = self._sessions.get(client_id or DEFAULT_CLIENT)
        if session is None:
            return False
        session.cancel()
        return True

    def shutdown(self) -> None:
        """Cancel every session and stop the worker pool."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.cancel()
        self.analyzer.shutdown()

    def _evict_idle(self) -> None:
        idle = [key for key, session in self._sessions.items() if session.state != ClassificationState.ANALYZING]
        for key in idle:
            del self._sessions[key]
        logger.debug(f"Evicted {len(idle)} idle classification sessions")


_classification_service: Optional[ClassificationService] = None


def get_classification_service() -> ClassificationService:
    """
    Get singleton classification service instance.

    Returns:
        classification_service: Shared service with a warm worker pool
    """
    global _classification_service

    if _classification_service is None:
        _classification_service = ClassificationService()

    return _classification_service


def shutdown_classification_service() -> None:
    """Stop the singleton (application shutdown)."""
    global _classification_service

    if _classification_service is not None:
        _classification_service.shutdown()
        _classification_service = None
