"""
Material Classification Module

Rule-based fabric estimation from texture statistics. No trained model:
a grayscale reduction of the isolated garment region is summarized by five
texture metrics, a few surface characteristics and pattern flags, which are
then matched against an ordered rule table (first match wins).

Texture metrics (all normalized to 0-1):
- roughness: mean Sobel gradient magnitude
- regularity: 1 - mean windowed (7x7) local variance
- granularity: mean absolute neighbor difference (horizontal + vertical)
- contrast: RMS contrast (global standard deviation)
- directionality: imbalance between horizontal and vertical gradients

Known limitations:
- Transparency is not measured (fixed placeholder)
- Lighting and camera noise move every metric
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.pixel_source import PixelBuffer
from app.cv.region_isolator import TEXTURE_CONSTRAINTS, RegionIsolator, create_region_isolator
from app.cv.taxonomy import ClothingMaterial

logger = logging.getLogger(__name__)

# Normalization constants
ROUGHNESS_SCALE = 2.0  # Mean 3x3 Sobel magnitude of uniform noise is ~1.25
NOISE_VARIANCE = 1.0 / 12.0  # Variance of uniform noise on [0, 1]
NOISE_NEIGHBOR_DIFF = 1.0 / 3.0  # Mean |a - b| for independent uniform a, b
MAX_STD = 0.5

TRANSPARENCY_PLACEHOLDER = 0.0


@dataclass
class TextureMetrics:
    """Texture statistics of a grayscale region."""
    roughness: float
    regularity: float
    granularity: float
    contrast: float
    directionality: float


@dataclass
class SurfaceCharacteristics:
    """Perceived surface properties."""
    shininess: float  # 95th percentile brightness
    softness: float  # 1 - roughness
    thickness: float  # Local contrast
    transparency: float  # Not measured


@dataclass
class PatternFlags:
    """Higher-level weave/knit patterns derived from the metrics."""
    weave: bool
    knit: bool
    fiber: bool
    geometric: bool
    pattern_scale: float  # 1 - granularity


@dataclass
class TextureProfile:
    """Everything the material rules look at."""
    metrics: TextureMetrics
    surface: SurfaceCharacteristics
    patterns: PatternFlags


@dataclass
class MaterialAnalysis:
    """Material decision with the evidence behind it."""
    material: ClothingMaterial
    profile: Optional[TextureProfile]
    method: str  # "rules" or "fallback"


MaterialRule = Tuple[ClothingMaterial, Callable[[TextureProfile], bool]]

# Evaluated in order; the first matching rule wins.
MATERIAL_RULES: List[MaterialRule] = [
    (
        ClothingMaterial.DENIM,
        lambda p: (
            p.metrics.roughness > 0.55
            and p.metrics.granularity > 0.4
            and p.metrics.directionality > 0.25
            and p.patterns.weave
        ),
    ),
    (
        ClothingMaterial.SILK,
        lambda p: (
            p.metrics.roughness < 0.25
            and p.metrics.contrast < 0.25
            and p.surface.shininess > 0.6
        ),
    ),
    (
        ClothingMaterial.WOOL,
        lambda p: (
            p.metrics.roughness > 0.6
            and p.metrics.directionality < 0.25
            and p.patterns.fiber
            and p.surface.thickness > 0.4
        ),
    ),
    (
        ClothingMaterial.LINEN,
        lambda p: (
            p.metrics.roughness > 0.45
            and p.patterns.weave
            and p.patterns.pattern_scale > 0.5
        ),
    ),
    (
        ClothingMaterial.COTTON,
        lambda p: (
            p.metrics.roughness < 0.5
            and p.surface.shininess < 0.4
            and not p.patterns.geometric
            and not p.patterns.knit
        ),
    ),
    (
        ClothingMaterial.POLYESTER,
        lambda p: (
            p.metrics.roughness < 0.4
            and p.surface.shininess > 0.4
            and p.metrics.regularity > 0.5
        ),
    ),
]

# Weighted pool used when the texture analysis cannot run
FALLBACK_MATERIALS: List[Tuple[ClothingMaterial, float]] = [
    (ClothingMaterial.COTTON, 0.30),
    (ClothingMaterial.POLYESTER, 0.25),
    (ClothingMaterial.DENIM, 0.15),
    (ClothingMaterial.WOOL, 0.10),
    (ClothingMaterial.SILK, 0.10),
    (ClothingMaterial.LINEN, 0.10),
]


def match_material(profile: TextureProfile, rules: List[MaterialRule] = MATERIAL_RULES) -> ClothingMaterial:
    """Return the label of the first rule whose predicate holds, else Unknown."""
    for material, predicate in rules:
        if predicate(profile):
            return material
    return ClothingMaterial.UNKNOWN


def pick_fallback_material(rng: np.random.Generator) -> ClothingMaterial:
    """Weighted pick from the fallback pool."""
    materials = [material for material, _ in FALLBACK_MATERIALS]
    weights = np.array([weight for _, weight in FALLBACK_MATERIALS])
    return materials[int(rng.choice(len(materials), p=weights / weights.sum()))]


def compute_texture_metrics(
    gray: np.ndarray,
    window: int = 7,
    window_stride: int = 4,
    token: Optional[CancellationToken] = None
) -> TextureMetrics:
    """
    Compute texture metrics over a grayscale image.

    Args:
        gray: H x W float32 image in [0, 1]
        window: Local variance window size
        window_stride: Spacing between sampled window centers
        token: Optional cancellation token

    Returns:
        TextureMetrics with every value in [0, 1]
    """
    gray = np.ascontiguousarray(gray, dtype=np.float32)

    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx ** 2 + gy ** 2)
    roughness = float(np.clip(magnitude.mean() / ROUGHNESS_SCALE, 0.0, 1.0))

    if token is not None:
        token.raise_if_cancelled()

    local_mean = cv2.boxFilter(gray, cv2.CV_32F, (window, window))
    local_sq_mean = cv2.boxFilter(gray * gray, cv2.CV_32F, (window, window))
    local_var = np.maximum(local_sq_mean - local_mean * local_mean, 0.0)
    half = window // 2
    if gray.shape[0] > 2 * half and gray.shape[1] > 2 * half:
        local_var = local_var[half:-half:window_stride, half:-half:window_stride]
    else:
        local_var = local_var[::window_stride, ::window_stride]
    regularity = float(1.0 - np.clip(local_var.mean() / NOISE_VARIANCE, 0.0, 1.0))

    if token is not None:
        token.raise_if_cancelled()

    diffs = []
    if gray.shape[1] > 1:
        diffs.append(np.abs(np.diff(gray, axis=1)).mean())
    if gray.shape[0] > 1:
        diffs.append(np.abs(np.diff(gray, axis=0)).mean())
    neighbor_diff = float(np.mean(diffs)) if diffs else 0.0
    granularity = float(np.clip(neighbor_diff / NOISE_NEIGHBOR_DIFF, 0.0, 1.0))

    contrast = float(np.clip(gray.std() / MAX_STD, 0.0, 1.0))

    horizontal = float(np.abs(gx).sum())
    vertical = float(np.abs(gy).sum())
    total = horizontal + vertical
    directionality = abs(horizontal - vertical) / total if total > 1e-6 else 0.0

    return TextureMetrics(
        roughness=roughness,
        regularity=regularity,
        granularity=granularity,
        contrast=contrast,
        directionality=float(directionality)
    )


def compute_surface(region_rgb: np.ndarray, metrics: TextureMetrics) -> SurfaceCharacteristics:
    """Surface characteristics from the full-color region and its texture metrics."""
    brightness = region_rgb.reshape(-1, 3).astype(np.float64).mean(axis=1) / 255.0
    return SurfaceCharacteristics(
        shininess=float(np.percentile(brightness, 95)),
        softness=1.0 - metrics.roughness,
        thickness=metrics.contrast,
        transparency=TRANSPARENCY_PLACEHOLDER
    )


def detect_patterns(metrics: TextureMetrics) -> PatternFlags:
    """Derive weave/knit/fiber/geometric flags from texture metrics."""
    return PatternFlags(
        weave=metrics.directionality > 0.2,
        knit=metrics.granularity > 0.25 and metrics.regularity > 0.5,
        fiber=metrics.roughness > 0.6 and metrics.directionality < 0.2,
        geometric=metrics.regularity > 0.7 and metrics.contrast > 0.3,
        pattern_scale=1.0 - metrics.granularity
    )


class MaterialClassifier:
    """
    Estimate garment material from texture.

    The region is isolated independently of the color stage, with the
    texture constraints. Any failure (tiny region, OpenCV error) falls back
    to a weighted pick from FALLBACK_MATERIALS, seeded by the image content,
    so the stage always produces a value.
    """

    def __init__(
        self,
        isolator: Optional[RegionIsolator] = None,
        max_side: int = 128,
        window: int = 7,
        window_stride: int = 4,
        min_region_side: int = 3
    ):
        """
        Initialize material classifier.

        Args:
            isolator: RegionIsolator instance (creates default if None)
            max_side: Grayscale reduction size (longest side)
            window: Local variance window
            window_stride: Spacing of sampled windows
            min_region_side: Smaller regions go straight to the fallback pool
        """
        self.isolator = isolator or create_region_isolator()
        self.max_side = max_side
        self.window = window
        self.window_stride = window_stride
        self.min_region_side = min_region_side

    def classify(self, frame: PixelBuffer, token: Optional[CancellationToken] = None) -> ClothingMaterial:
        """Analyzer stage entry point: material label."""
        return self.analyze(frame, token).material

    def analyze(self, frame: PixelBuffer, token: Optional[CancellationToken] = None) -> MaterialAnalysis:
        """
        Analyze material of the garment in a frame.

        Returns:
            MaterialAnalysis; method is "fallback" if the rules could not run
        """
        token = token or CancellationToken()

        try:
            region = self.isolator.isolate(frame, TEXTURE_CONSTRAINTS, token)
            token.raise_if_cancelled()

            h, w = region.pixels.shape[:2]
            if min(h, w) < self.min_region_side:
                logger.debug(f"Texture region too small ({w}x{h}), using fallback pool")
                return self._fallback(frame)

            profile = self.profile_region(region.pixels, token)
            material = match_material(profile)
            logger.debug(f"Material rules: {material.value} ({profile.metrics})")
            return MaterialAnalysis(material=material, profile=profile, method="rules")

        except AnalysisCancelled:
            raise
        except Exception as e:
            logger.warning(f"Material analysis failed, using fallback pool: {e}")
            return self._fallback(frame)

    def profile_region(self, region_rgb: np.ndarray, token: Optional[CancellationToken] = None) -> TextureProfile:
        """Compute metrics, surface characteristics and patterns for a region."""
        region_rgb = np.ascontiguousarray(region_rgb)
        gray = cv2.cvtColor(region_rgb, cv2.COLOR_RGB2GRAY)

        h, w = gray.shape
        longest = max(h, w)
        if longest > self.max_side:
            scale = self.max_side / longest
            size = (max(1, int(w * scale)), max(1, int(h * scale)))
            gray = cv2.resize(gray, size, interpolation=cv2.INTER_AREA)

        metrics = compute_texture_metrics(
            gray.astype(np.float32) / 255.0,
            window=self.window,
            window_stride=self.window_stride,
            token=token
        )
        surface = compute_surface(region_rgb, metrics)
        patterns = detect_patterns(metrics)

        return TextureProfile(metrics=metrics, surface=surface, patterns=patterns)

    @staticmethod
    def _fallback(frame: PixelBuffer) -> MaterialAnalysis:
        return MaterialAnalysis(
            material=pick_fallback_material(frame.rng(stream=2)),
            profile=None,
            method="fallback"
        )


def create_material_classifier() -> MaterialClassifier:
    """
    Factory function to create material classifier.

    Returns:
        MaterialClassifier instance
    """
    return MaterialClassifier()
