"""
Cooperative cancellation for classification runs.

Analyzer stages run on worker threads, which cannot be interrupted from the
outside, so every stage polls a shared token between steps and inside its
longer loops.
"""
import threading

from app.cv.errors import AnalysisCancelled


class CancellationToken:
    """One-shot cancellation flag shared by the stages of a single run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise AnalysisCancelled if the run has been cancelled."""
        if self._event.is_set():
            raise AnalysisCancelled("Classification run was cancelled")

    def wait(self, timeout: float) -> bool:
        """Block up to `timeout` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)
