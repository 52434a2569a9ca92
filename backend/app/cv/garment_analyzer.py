"""
Garment Analysis Service

Runs the color, material and type stages concurrently over one shared
read-only frame and joins them into a single ClassificationResult.

Workflow:
1. Fan out the three stages to a worker pool
2. Wait for all of them (no partial results), polling the cancellation
   token and the wall-clock deadline; the deadline counts from the moment a
   worker picks up the run, and an abandoned run drops its queued stages
3. Assemble the result; confidence comes from the type stage only
4. ClassificationSession applies the acceptance threshold and reports an
   explicit outcome (succeeded / failed / timed out / cancelled)
"""
import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from app.cv.cancellation import CancellationToken
from app.cv.color_extractor import create_color_extractor
from app.cv.errors import (
    AnalysisCancelled,
    AnalysisTimeout,
    ClassificationError,
    DecodeError,
    LowConfidence,
)
from app.cv.garment_type_classifier import TypePrediction, create_type_classifier
from app.cv.material_classifier import create_material_classifier
from app.cv.pixel_source import PixelBuffer, decode_image
from app.cv.taxonomy import UNKNOWN_COLOR, ClothingMaterial, ClothingType

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_MIN_CONFIDENCE = 0.1
CANCELLED_MESSAGE = "Analysis was cancelled."


@dataclass
class ClassificationResult:
    """Attributes inferred from one garment photo."""
    type: ClothingType
    material: ClothingMaterial
    color: str
    confidence: float  # 0-1, from the type stage

    @property
    def suggested_name(self) -> str:
        """Default item name, e.g. "Blue Denim Jeans"."""
        return f"{self.color} {self.material.value} {self.type.value}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "material": self.material.value,
            "color": self.color,
            "confidence": self.confidence
        }

    @classmethod
    def unknown(cls) -> "ClassificationResult":
        """Result reported when the image could not be analyzed at all."""
        return cls(
            type=ClothingType.UNKNOWN,
            material=ClothingMaterial.UNKNOWN,
            color=UNKNOWN_COLOR,
            confidence=0.0
        )


class ClassificationState(str, Enum):
    """Lifecycle of a classification session."""
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class ClassificationOutcome:
    """Terminal outcome of one classification request."""
    state: ClassificationState
    result: Optional[ClassificationResult] = None
    message: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.state == ClassificationState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "result": self.result.to_dict() if self.result else None,
            "message": self.message
        }


class GarmentAnalyzer:
    """
    Fan-out/fan-in classifier over the three analysis stages.

    Stages are pluggable: anything with `classify(frame, token)` works. The
    color stage returns a color name, the material stage a ClothingMaterial
    and the type stage a TypePrediction.
    """

    def __init__(
        self,
        color_stage=None,
        material_stage=None,
        type_stage=None,
        max_workers: int = 3,
        poll_interval: float = 0.05
    ):
        """
        Initialize garment analyzer.

        Args:
            color_stage: Color stage (creates ColorExtractor if None)
            material_stage: Material stage (creates MaterialClassifier if None)
            type_stage: Type stage (creates GarmentTypeClassifier if None)
            max_workers: Worker threads shared by all runs
            poll_interval: Seconds between cancellation/deadline checks
        """
        self.color_stage = color_stage or create_color_extractor()
        self.material_stage = material_stage or create_material_classifier()
        self.type_stage = type_stage or create_type_classifier()
        self.poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="garment-analysis")

    def analyze(
        self,
        frame: PixelBuffer,
        token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None
    ) -> ClassificationResult:
        """
        Classify a decoded frame.

        Args:
            frame: Read-only input frame
            token: Cancellation token for this run (created if None)
            timeout: Budget in seconds from the first stage start (None = unbounded)

        Returns:
            ClassificationResult (not yet gated by confidence)

        Raises:
            AnalysisCancelled: If the token was cancelled before all stages joined
            AnalysisTimeout: If the budget elapsed first; the token is cancelled
                so in-flight stages stop
        """
        token = token or CancellationToken()
        token.raise_if_cancelled()

        started = time.monotonic()
        # The budget counts from the moment a worker picks up this run
        clock: Dict[str, float] = {}

        futures = {
            "color": self._executor.submit(self._run_stage, self.color_stage, frame, token, clock),
            "material": self._executor.submit(self._run_stage, self.material_stage, frame, token, clock),
            "type": self._executor.submit(self._run_stage, self.type_stage, frame, token, clock),
        }

        pending = set(futures.values())
        while pending:
            if token.cancelled:
                self._abandon(futures.values())
                raise AnalysisCancelled("Classification run was cancelled")

            wait_for = self.poll_interval
            if timeout is not None and "started" in clock:
                remaining = clock["started"] + timeout - time.monotonic()
                if remaining <= 0:
                    token.cancel()
                    self._abandon(futures.values())
                    logger.warning(f"Classification timed out after {timeout:.1f}s")
                    raise AnalysisTimeout(timeout)
                wait_for = min(wait_for, remaining)

            _, pending = wait(pending, timeout=wait_for, return_when=FIRST_EXCEPTION)

        token.raise_if_cancelled()

        color = self._stage_value("color", futures["color"], UNKNOWN_COLOR)
        material = self._stage_value("material", futures["material"], ClothingMaterial.UNKNOWN)
        prediction = self._stage_value(
            "type",
            futures["type"],
            TypePrediction(type=ClothingType.UNKNOWN, confidence=0.0, path="fault")
        )

        result = ClassificationResult(
            type=prediction.type,
            material=material,
            color=color,
            confidence=float(prediction.confidence)
        )

        logger.info(
            f"Classified {frame.width}x{frame.height} frame as {result.suggested_name} "
            f"(confidence={result.confidence:.2f}, {time.monotonic() - started:.3f}s)"
        )
        return result

    @staticmethod
    def _run_stage(stage, frame: PixelBuffer, token: CancellationToken, clock: Dict[str, float]):
        """Worker entry point: skip cancelled runs, stamp the run's start time."""
        token.raise_if_cancelled()
        clock.setdefault("started", time.monotonic())
        return stage.classify(frame, token)

    @staticmethod
    def _abandon(futures) -> None:
        """Drop stages of an abandoned run that have not reached a worker yet."""
        dropped = sum(1 for future in futures if future.cancel())
        if dropped:
            logger.debug(f"Dropped {dropped} queued stages of an abandoned run")

    @staticmethod
    def _stage_value(name: str, future: Future, default):
        """Result of a joined stage; unexpected stage errors degrade to `default`."""
        error = future.exception()
        if error is None:
            return future.result()
        if isinstance(error, AnalysisCancelled):
            raise error
        logger.error(f"{name} stage raised unexpectedly: {error}")
        return default

    def shutdown(self, wait_for_workers: bool = False) -> None:
        """Release worker threads."""
        self._executor.shutdown(wait=wait_for_workers)


class ClassificationSession:
    """
    One caller's classification lifecycle.

    At most one run is in flight: a new request cancels the previous one
    (cancel-and-restart) and the superseded run reports CANCELLED without a
    result.
    """

    def __init__(
        self,
        analyzer: GarmentAnalyzer,
        timeout: float = DEFAULT_TIMEOUT,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE
    ):
        self.analyzer = analyzer
        self.timeout = timeout
        self.min_confidence = min_confidence

        self._lock = threading.Lock()
        self._state = ClassificationState.IDLE
        self._token: Optional[CancellationToken] = None
        self._run_id = 0

    @property
    def state(self) -> ClassificationState:
        with self._lock:
            return self._state

    def cancel(self) -> None:
        """Cancel the in-flight run, if any."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def classify(self, image: Union[bytes, PixelBuffer]) -> ClassificationOutcome:
        """
        Classify encoded image bytes or a decoded frame.

        Returns:
            ClassificationOutcome; never raises for image or analysis problems
        """
        token = CancellationToken()
        with self._lock:
            if self._token is not None:
                logger.info("New classification request supersedes the run in flight")
                self._token.cancel()
            self._token = token
            self._run_id += 1
            run_id = self._run_id
            self._state = ClassificationState.ANALYZING

        outcome = self._run(image, token)

        with self._lock:
            superseded = run_id != self._run_id
            if not superseded:
                self._token = None
            if token.cancelled and outcome.state != ClassificationState.TIMED_OUT:
                outcome = ClassificationOutcome(state=ClassificationState.CANCELLED, message=CANCELLED_MESSAGE)
            if not superseded:
                self._state = outcome.state

        return outcome

    def _run(self, image: Union[bytes, PixelBuffer], token: CancellationToken) -> ClassificationOutcome:
        try:
            frame = image if isinstance(image, PixelBuffer) else decode_image(image)
            result = self.analyzer.analyze(frame, token, self.timeout)

        except DecodeError as e:
            logger.warning(f"Image could not be decoded: {e}")
            return ClassificationOutcome(
                state=ClassificationState.FAILED,
                result=ClassificationResult.unknown(),
                message=e.user_message,
                error=e
            )
        except AnalysisTimeout as e:
            return ClassificationOutcome(state=ClassificationState.TIMED_OUT, message=e.user_message, error=e)
        except AnalysisCancelled as e:
            return ClassificationOutcome(state=ClassificationState.CANCELLED, message=CANCELLED_MESSAGE, error=e)

        if result.confidence > self.min_confidence:
            return ClassificationOutcome(state=ClassificationState.SUCCEEDED, result=result)

        error: ClassificationError = LowConfidence(result.confidence, self.min_confidence)
        logger.info(f"Classification rejected: {error}")
        return ClassificationOutcome(
            state=ClassificationState.FAILED,
            result=result,
            message=error.user_message,
            error=error
        )


def create_garment_analyzer(max_workers: int = 3) -> GarmentAnalyzer:
    """
    Factory function to create garment analyzer with default stages.

    Returns:
        GarmentAnalyzer instance
    """
    return GarmentAnalyzer(
        color_stage=create_color_extractor(),
        material_stage=create_material_classifier(),
        type_stage=create_type_classifier(),
        max_workers=max_workers
    )
