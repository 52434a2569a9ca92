"""
Garment Type Classification Module

Heuristic type inference from whole-frame proportions. No trained model:
the garment is assumed to fill most of the photo, so the frame aspect ratio
is the main signal, with brightness and color variance as tie-breakers.

Confidence is deterministic and reflects which path produced the label:

    confidence = base(path) * quality
    quality    = 0.5 + 0.5 * min(1, samples / 1000)

A stage fault reports FAULT_CONFIDENCE directly (no samples were measured).
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.pixel_source import PixelBuffer
from app.cv.taxonomy import ClothingType

logger = logging.getLogger(__name__)

MAX_SAMPLES = 1000

# Base confidence per decision path
ASPECT_RULE_CONFIDENCE = 0.85
JACKET_RULE_CONFIDENCE = 0.6
POOL_CONFIDENCE = 0.35
FAULT_CONFIDENCE = 0.2

# Weighted pool for frames no proportion rule claims
COMMON_TYPES: List[Tuple[ClothingType, float]] = [
    (ClothingType.T_SHIRT, 0.20),
    (ClothingType.SHIRT, 0.18),
    (ClothingType.PANTS, 0.18),
    (ClothingType.JEANS, 0.16),
    (ClothingType.SWEATER, 0.08),
    (ClothingType.JACKET, 0.08),
    (ClothingType.DRESS, 0.06),
    (ClothingType.SHORTS, 0.06),
]


@dataclass
class TypeFeatures:
    """Whole-frame measurements used by the type rules."""
    aspect_ratio: float  # width / height
    brightness: float  # Mean sampled luma, 0-1
    color_variance: float  # 4 * variance of sampled luma, 0-1
    samples: int


@dataclass
class TypePrediction:
    """Type stage output."""
    type: ClothingType
    confidence: float
    path: str  # "aspect", "jacket", "pool" or "fault"
    features: Optional[TypeFeatures] = None


def sample_quality(samples: int) -> float:
    """Confidence multiplier for the number of pixels measured."""
    return 0.5 + 0.5 * min(1.0, samples / MAX_SAMPLES)


def pick_common_type(rng: np.random.Generator) -> ClothingType:
    """Weighted pick from COMMON_TYPES."""
    types = [garment_type for garment_type, _ in COMMON_TYPES]
    weights = np.array([weight for _, weight in COMMON_TYPES])
    return types[int(rng.choice(len(types), p=weights / weights.sum()))]


def measure_frame(
    frame: PixelBuffer,
    max_samples: int = MAX_SAMPLES,
    token: Optional[CancellationToken] = None
) -> TypeFeatures:
    """
    Measure aspect ratio, brightness and color variance of a frame.

    Luma is sampled on a uniform grid sized so that at most `max_samples`
    pixels are read. The token is checked between the sampling steps.
    """
    token = token or CancellationToken()
    h, w = frame.height, frame.width
    stride = max(1, int(math.ceil(math.sqrt((h * w) / max_samples))))

    grid = frame.rgb[::stride, ::stride].reshape(-1, 3)[:max_samples].astype(np.float64)
    token.raise_if_cancelled()
    luma = (0.299 * grid[:, 0] + 0.587 * grid[:, 1] + 0.114 * grid[:, 2]) / 255.0
    token.raise_if_cancelled()

    return TypeFeatures(
        aspect_ratio=w / h,
        brightness=float(luma.mean()),
        color_variance=float(min(1.0, 4.0 * luma.var())),
        samples=int(len(luma))
    )


def apply_type_rules(features: TypeFeatures) -> Tuple[Optional[ClothingType], str]:
    """
    Ordered proportion rules.

    Returns:
        (type, path); type is None when the frame falls to the common pool
    """
    ratio = features.aspect_ratio
    brightness = features.brightness
    variance = features.color_variance

    if ratio > 1.8:
        return (ClothingType.JEANS if variance > 0.3 else ClothingType.PANTS), "aspect"

    if 1.3 < ratio <= 1.8:
        return (ClothingType.SHORTS if brightness > 0.7 else ClothingType.PANTS), "aspect"

    if 0.9 <= ratio <= 1.1:
        if brightness < 0.3:
            return ClothingType.SWEATER, "aspect"
        if variance > 0.4:
            return ClothingType.SHIRT, "aspect"
        return ClothingType.T_SHIRT, "aspect"

    if ratio < 0.6:
        return (ClothingType.DRESS if brightness > 0.6 else ClothingType.COAT), "aspect"

    if brightness < 0.4 and variance < 0.3:
        return ClothingType.JACKET, "jacket"

    return None, "pool"


class GarmentTypeClassifier:
    """
    Classify garment type from the unmodified frame.

    Never raises for bad pixels: a fault yields a pool pick at
    FAULT_CONFIDENCE. Only cancellation unwinds.
    """

    BASE_CONFIDENCE = {
        "aspect": ASPECT_RULE_CONFIDENCE,
        "jacket": JACKET_RULE_CONFIDENCE,
        "pool": POOL_CONFIDENCE,
    }

    def __init__(self, max_samples: int = MAX_SAMPLES):
        self.max_samples = max_samples

    def classify(self, frame: PixelBuffer, token: Optional[CancellationToken] = None) -> TypePrediction:
        """
        Classify garment type.

        Args:
            frame: Full input frame
            token: Optional cancellation token

        Returns:
            TypePrediction with confidence in [0, 1]
        """
        token = token or CancellationToken()

        try:
            token.raise_if_cancelled()
            features = measure_frame(frame, self.max_samples, token)
            token.raise_if_cancelled()

            garment_type, path = apply_type_rules(features)
            if garment_type is None:
                garment_type = pick_common_type(frame.rng(stream=3))

            confidence = self.BASE_CONFIDENCE[path] * sample_quality(features.samples)

            logger.debug(
                f"Type: {garment_type.value} via {path} "
                f"(ratio={features.aspect_ratio:.2f}, brightness={features.brightness:.2f}, "
                f"variance={features.color_variance:.2f}, confidence={confidence:.2f})"
            )

            return TypePrediction(
                type=garment_type,
                confidence=float(np.clip(confidence, 0.0, 1.0)),
                path=path,
                features=features
            )

        except AnalysisCancelled:
            raise
        except Exception as e:
            logger.warning(f"Type classification failed, using common-types pool: {e}")
            return TypePrediction(
                type=pick_common_type(frame.rng(stream=3)),
                confidence=FAULT_CONFIDENCE,
                path="fault"
            )


def create_type_classifier() -> GarmentTypeClassifier:
    """
    Factory function to create garment type classifier.

    Returns:
        GarmentTypeClassifier instance
    """
    return GarmentTypeClassifier()
