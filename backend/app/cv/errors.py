"""
Classification error taxonomy.

Only the aggregator and its callers see these. Individual analyzer stages
never raise them (apart from AnalysisCancelled, which unwinds a cancelled
run).
"""


class ClassificationError(Exception):
    """Base class for failures surfaced to the caller of a classification."""

    user_message = "Could not analyze this image."


class DecodeError(ClassificationError):
    """Input could not be interpreted as an image, or has zero area."""

    user_message = "Could not read this image. Please choose a different photo."


class LowConfidence(ClassificationError):
    """Pipeline completed but the result is below the acceptance threshold."""

    user_message = "Could not analyze this image. Please try a clearer photo of clothing."

    def __init__(self, confidence: float, threshold: float):
        super().__init__(
            f"Classification confidence {confidence:.3f} is not above threshold {threshold:.3f}"
        )
        self.confidence = confidence
        self.threshold = threshold


class AnalysisTimeout(ClassificationError):
    """Wall-clock budget elapsed before all stages completed."""

    user_message = "Analysis timed out. Please try again."

    def __init__(self, timeout: float):
        super().__init__(f"Classification did not finish within {timeout:.1f}s")
        self.timeout = timeout


class AnalysisCancelled(Exception):
    """Run was cancelled (explicitly or superseded); it must not emit a result."""
