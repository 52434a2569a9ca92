"""
Color Extraction Module

Finds the dominant garment color in a photo and maps it to a human-readable
name.

Pipeline:
1. Isolate the garment region (color constraints)
2. Downscale and sample on a fixed stride, skipping the crop margin and
   lighting extremes
3. Drop backdrop-like samples (bright and unsaturated, or very dark)
4. k-means cluster the remaining samples in RGB
5. Name the heaviest cluster via HSL bands
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import numpy as np

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.pixel_source import PixelBuffer
from app.cv.region_isolator import COLOR_CONSTRAINTS, RegionIsolator, create_region_isolator
from app.cv.taxonomy import UNKNOWN_COLOR

logger = logging.getLogger(__name__)

# Upper bound (exclusive) of each hue band in degrees, evaluated in order
HUE_BANDS = [
    (15.0, "Red"),
    (45.0, "Orange"),
    (75.0, "Yellow"),
    (165.0, "Green"),
    (195.0, "Cyan"),
    (255.0, "Blue"),
    (285.0, "Purple"),
    (345.0, "Pink"),
    (360.0, "Red"),
]

# Lower bound (exclusive) of each lightness band for unsaturated colors
GRAYSCALE_BANDS = [
    (0.9, "White"),
    (0.7, "Light Gray"),
    (0.3, "Gray"),
    (0.1, "Dark Gray"),
]

GRAYSCALE_SATURATION = 0.15


@dataclass
class ColorCluster:
    """k-means cluster of sampled pixels."""
    centroid: Tuple[float, float, float]  # RGB, 0-255
    weight: float  # Fraction of samples assigned to this cluster


@dataclass
class ColorDescriptor:
    """Color information for a garment photo."""
    color_name: str
    rgb: Optional[Tuple[float, float, float]]  # Dominant centroid, None if unknown
    clusters: List[ColorCluster] = field(default_factory=list)
    source: str = "region"  # "region", "frame", "mean" or "error"


def rgb_to_hsl(r: float, g: float, b: float) -> Tuple[float, float, float]:
    """
    Convert an RGB triple (0-255) to HSL.

    Returns:
        (hue in degrees [0, 360), saturation [0, 1], lightness [0, 1])
    """
    pixel = np.array([[[r, g, b]]], dtype=np.float32) / 255.0
    hue, lightness, saturation = cv2.cvtColor(pixel, cv2.COLOR_RGB2HLS)[0, 0]
    return float(hue) % 360.0, float(saturation), float(lightness)


def name_color(hue: float, saturation: float, lightness: float) -> str:
    """
    Map an HSL color to a name.

    Unsaturated colors are banded by lightness (White ... Black). Others get a
    hue family with a "Light", "Dark" or "Bright" modifier.
    """
    if saturation < GRAYSCALE_SATURATION:
        for threshold, name in GRAYSCALE_BANDS:
            if lightness > threshold:
                return name
        return "Black"

    hue = hue % 360.0
    family = "Red"
    for upper, name in HUE_BANDS:
        if hue < upper:
            family = name
            break

    if lightness > 0.8:
        return f"Light {family}"
    if lightness < 0.3:
        return f"Dark {family}"
    if saturation > 0.8:
        return f"Bright {family}"
    return family


def rgb_to_color_name(rgb: Tuple[float, float, float]) -> str:
    """
    Name an RGB color (0-255).

    Near-neutral colors with every channel below 50 are Black, and above 200
    are White, before lightness banding applies.
    """
    r, g, b = rgb
    hue, saturation, lightness = rgb_to_hsl(r, g, b)

    if saturation < GRAYSCALE_SATURATION:
        if max(r, g, b) < 50:
            return "Black"
        if min(r, g, b) > 200:
            return "White"

    return name_color(hue, saturation, lightness)


def background_mask(samples: np.ndarray) -> np.ndarray:
    """
    Boolean mask of samples that look like garment rather than backdrop.

    Args:
        samples: N x 3 RGB samples (0-255)

    Returns:
        N boolean array, True = keep
    """
    norm = samples.astype(np.float64) / 255.0
    brightness = norm.mean(axis=1)
    high = norm.max(axis=1)
    low = norm.min(axis=1)
    saturation = np.divide(high - low, high, out=np.zeros_like(high), where=high > 0)

    return (
        ((brightness < 0.9) | (saturation > 0.3))
        & (brightness > 0.1)
        & ((saturation > 0.1) | ((brightness > 0.2) & (brightness < 0.8)))
    )


def cluster_colors(
    samples: np.ndarray,
    k: int,
    rng: np.random.Generator,
    iterations: int = 10,
    token: Optional[CancellationToken] = None
) -> List[ColorCluster]:
    """
    k-means clustering of RGB samples.

    Initial centroids are k random picks among the distinct sample colors
    (so k never exceeds the number of distinct colors). Each iteration assigns
    samples to the nearest centroid (Euclidean RGB) and recomputes the means;
    empty clusters keep their previous centroid. Final weights come from an
    assignment against the final centroids.

    Args:
        samples: N x 3 RGB samples
        k: Requested cluster count (capped at the distinct color count)
        rng: Random generator for initialization
        iterations: Fixed iteration count
        token: Optional cancellation token, checked every iteration

    Returns:
        Non-empty clusters, heaviest first; weights sum to 1.0
    """
    n = len(samples)
    if n == 0:
        return []

    data = samples.astype(np.float64)
    distinct = np.unique(data, axis=0)
    k = max(1, min(k, len(distinct)))
    centroids = distinct[rng.choice(len(distinct), size=k, replace=False)].copy()

    for _ in range(iterations):
        if token is not None:
            token.raise_if_cancelled()
        labels = _nearest(data, centroids)
        for i in range(k):
            members = data[labels == i]
            if len(members):
                centroids[i] = members.mean(axis=0)

    labels = _nearest(data, centroids)
    counts = np.bincount(labels, minlength=k)

    clusters = [
        ColorCluster(centroid=tuple(float(c) for c in centroids[i]), weight=float(counts[i]) / n)
        for i in range(k)
        if counts[i] > 0
    ]
    clusters.sort(key=lambda cluster: cluster.weight, reverse=True)
    return clusters


def _nearest(data: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    distances = np.linalg.norm(data[:, np.newaxis, :] - centroids[np.newaxis, :, :], axis=2)
    return distances.argmin(axis=1)


class ColorExtractor:
    """
    Extract the dominant color name from a garment photo.

    Never raises for bad pixels: every failure degrades to the next source
    (isolated region → full frame → mean color → "Unknown"). Only
    cancellation unwinds.
    """

    def __init__(
        self,
        isolator: Optional[RegionIsolator] = None,
        downscale: float = 0.15,
        min_side: int = 16,
        sample_stride: int = 2,
        edge_margin: float = 0.1,
        iterations: int = 10
    ):
        """
        Initialize color extractor.

        Args:
            isolator: RegionIsolator instance (creates default if None)
            downscale: Linear scale applied before sampling
            min_side: Downscaling never goes below this many pixels per side
            sample_stride: Sampling step on the downscaled region
            edge_margin: Skipped border, as a fraction of the smaller side
            iterations: k-means iteration count
        """
        self.isolator = isolator or create_region_isolator()
        self.downscale = downscale
        self.min_side = min_side
        self.sample_stride = sample_stride
        self.edge_margin = edge_margin
        self.iterations = iterations

    def classify(self, frame: PixelBuffer, token: Optional[CancellationToken] = None) -> str:
        """Analyzer stage entry point: dominant color name."""
        return self.extract(frame, token).color_name

    def extract(self, frame: PixelBuffer, token: Optional[CancellationToken] = None) -> ColorDescriptor:
        """
        Extract color descriptor from a frame.

        Args:
            frame: Full input frame
            token: Optional cancellation token

        Returns:
            ColorDescriptor (color_name is "Unknown" if nothing usable)
        """
        token = token or CancellationToken()
        rng = frame.rng(stream=1)

        try:
            region = self.isolator.isolate(frame, COLOR_CONSTRAINTS, token)
            token.raise_if_cancelled()

            clusters = self._cluster_region(region.pixels, rng, token)
            source = "region"

            if not clusters:
                logger.debug("No usable samples in isolated region, using full frame")
                clusters = self._cluster_region(frame.rgb, rng, token)
                source = "frame"

            if not clusters:
                # Every sample was a lighting extreme; the average is all we have
                mean = np.ascontiguousarray(region.pixels).reshape(-1, 3).astype(np.float64).mean(axis=0)
                rgb = tuple(float(c) for c in mean)
                return ColorDescriptor(color_name=rgb_to_color_name(rgb), rgb=rgb, source="mean")

            dominant = clusters[0].centroid
            return ColorDescriptor(
                color_name=rgb_to_color_name(dominant),
                rgb=dominant,
                clusters=clusters,
                source=source
            )

        except AnalysisCancelled:
            raise
        except Exception as e:
            logger.warning(f"Color extraction failed, reporting unknown color: {e}")
            return ColorDescriptor(color_name=UNKNOWN_COLOR, rgb=None, source="error")

    def sample_pixels(self, region: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Downscale and sample a region.

        Returns:
            (samples without lighting extremes, all samples), each N x 3 float
        """
        h, w = region.shape[:2]
        target_w = max(1, min(w, max(int(w * self.downscale), self.min_side)))
        target_h = max(1, min(h, max(int(h * self.downscale), self.min_side)))

        small = np.ascontiguousarray(region)
        if (target_w, target_h) != (w, h):
            small = cv2.resize(small, (target_w, target_h), interpolation=cv2.INTER_AREA)

        margin = int(min(target_w, target_h) * self.edge_margin)
        if target_h - 2 * margin <= 0 or target_w - 2 * margin <= 0:
            margin = 0

        grid = small[margin:target_h - margin:self.sample_stride, margin:target_w - margin:self.sample_stride]
        samples = grid.reshape(-1, 3).astype(np.float64)

        brightness = samples.mean(axis=1) / 255.0
        usable = (brightness > 0.05) & (brightness < 0.95)
        return samples[usable], samples

    def _cluster_region(
        self,
        region: np.ndarray,
        rng: np.random.Generator,
        token: CancellationToken
    ) -> List[ColorCluster]:
        samples, _ = self.sample_pixels(region)
        if len(samples) == 0:
            return []

        filtered = samples[background_mask(samples)]
        if len(filtered):
            return cluster_colors(filtered, min(2, len(filtered)), rng, self.iterations, token)

        logger.debug(f"Background filter removed all {len(samples)} samples, clustering unfiltered")
        return cluster_colors(samples, min(3, len(samples)), rng, self.iterations, token)


def create_color_extractor(downscale: float = 0.15) -> ColorExtractor:
    """
    Factory function to create color extractor.

    Args:
        downscale: Linear scale applied before sampling

    Returns:
        ColorExtractor instance
    """
    return ColorExtractor(downscale=downscale)
