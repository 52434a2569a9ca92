"""
Region Isolation Module

Locates the bounding box most likely to contain the garment so that color and
texture analysis are not dominated by the backdrop.

Strategy:
- Edge map (blur + Canny + dilate) over the full frame
- External contours → bounding rectangles
- Constrain by aspect ratio and minimum relative size
- Keep the strongest few candidates, pick the largest box
- Fall back to a fixed centered rectangle when nothing qualifies

Detection failures are never propagated: the fallback rectangle is always a
valid answer.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.pixel_source import PixelBuffer

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]  # x, y, w, h in frame coordinates


@dataclass(frozen=True)
class IsolationConstraints:
    """Candidate filter for one consumer of the isolator."""
    min_aspect_ratio: float  # width / height
    max_aspect_ratio: float
    min_relative_size: float  # fraction of frame area
    max_candidates: int
    fallback_fraction: float  # centered rectangle, fraction of each side


COLOR_CONSTRAINTS = IsolationConstraints(
    min_aspect_ratio=0.3,
    max_aspect_ratio=3.0,
    min_relative_size=0.20,
    max_candidates=3,
    fallback_fraction=0.6,
)

TEXTURE_CONSTRAINTS = IsolationConstraints(
    min_aspect_ratio=0.2,
    max_aspect_ratio=5.0,
    min_relative_size=0.15,
    max_candidates=5,
    fallback_fraction=0.5,
)


@dataclass
class IsolatedRegion:
    """Crop of the frame believed to contain the garment."""
    pixels: np.ndarray  # H x W x 3 RGB crop (view into the frame)
    box: Box
    method: str  # "detected" or "fallback"


class RegionIsolator:
    """
    Find the dominant foreground object in a frame.

    Frames smaller than `min_frame_side` on either side skip detection and
    use the fallback rectangle directly.
    """

    def __init__(
        self,
        canny_low: int = 50,
        canny_high: int = 150,
        blur_kernel: int = 5,
        min_frame_side: int = 16
    ):
        """
        Initialize region isolator.

        Args:
            canny_low: Lower hysteresis threshold for Canny
            canny_high: Upper hysteresis threshold for Canny
            blur_kernel: Gaussian blur kernel size (odd)
            min_frame_side: Frames with a smaller side go straight to fallback
        """
        self.canny_low = canny_low
        self.canny_high = canny_high
        self.blur_kernel = blur_kernel
        self.min_frame_side = min_frame_side

    def isolate(
        self,
        frame: PixelBuffer,
        constraints: IsolationConstraints,
        token: Optional[CancellationToken] = None
    ) -> IsolatedRegion:
        """
        Isolate the garment region.

        Args:
            frame: Full input frame
            constraints: Candidate filter (COLOR_CONSTRAINTS / TEXTURE_CONSTRAINTS)
            token: Optional cancellation token, checked between detection steps

        Returns:
            IsolatedRegion in original frame coordinates

        Raises:
            AnalysisCancelled: If the token is cancelled during detection
        """
        box = None

        if min(frame.width, frame.height) >= self.min_frame_side:
            try:
                candidates = self.detect_candidates(frame, constraints, token)
                box = self.select_largest(candidates)
            except AnalysisCancelled:
                raise
            except Exception as e:
                logger.warning(f"Region detection failed, using centered fallback: {e}")
                box = None

        if box is None:
            box = self.fallback_box(frame.width, frame.height, constraints.fallback_fraction)
            method = "fallback"
        else:
            method = "detected"

        x, y, w, h = box
        return IsolatedRegion(
            pixels=frame.rgb[y:y + h, x:x + w],
            box=box,
            method=method
        )

    def detect_candidates(
        self,
        frame: PixelBuffer,
        constraints: IsolationConstraints,
        token: Optional[CancellationToken] = None
    ) -> List[Box]:
        """
        Detect candidate rectangles satisfying the constraints.

        Returns:
            Up to `constraints.max_candidates` boxes, strongest contour first
        """
        token = token or CancellationToken()

        gray = cv2.cvtColor(np.ascontiguousarray(frame.rgb), cv2.COLOR_RGB2GRAY)
        token.raise_if_cancelled()
        blurred = cv2.GaussianBlur(gray, (self.blur_kernel, self.blur_kernel), 0)
        token.raise_if_cancelled()
        edges = cv2.Canny(blurred, self.canny_low, self.canny_high)
        token.raise_if_cancelled()
        edges = cv2.dilate(edges, np.ones((3, 3), np.uint8), iterations=2)
        token.raise_if_cancelled()

        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        token.raise_if_cancelled()

        frame_area = float(frame.width * frame.height)
        scored = []
        for index, contour in enumerate(contours):
            if index % 256 == 0:
                token.raise_if_cancelled()
            x, y, w, h = cv2.boundingRect(contour)
            if w == 0 or h == 0:
                continue

            aspect = w / h
            if not (constraints.min_aspect_ratio <= aspect <= constraints.max_aspect_ratio):
                continue

            if (w * h) / frame_area < constraints.min_relative_size:
                continue

            scored.append((cv2.contourArea(contour), (int(x), int(y), int(w), int(h))))

        # Stable sort keeps contour order for equal strengths
        scored.sort(key=lambda item: item[0], reverse=True)
        candidates = [box for _, box in scored[:constraints.max_candidates]]

        logger.debug(f"Region isolation: {len(contours)} contours, {len(candidates)} candidates")
        return candidates

    @staticmethod
    def select_largest(candidates: List[Box]) -> Optional[Box]:
        """Largest bounding-box area wins; ties keep the earlier candidate."""
        best = None
        best_area = -1
        for box in candidates:
            area = box[2] * box[3]
            if area > best_area:
                best = box
                best_area = area
        return best

    @staticmethod
    def fallback_box(width: int, height: int, fraction: float) -> Box:
        """Centered rectangle covering `fraction` of each side (at least 1px)."""
        w = max(1, int(round(width * fraction)))
        h = max(1, int(round(height * fraction)))
        x = (width - w) // 2
        y = (height - h) // 2
        return (x, y, w, h)


def create_region_isolator() -> RegionIsolator:
    """
    Factory function to create region isolator.

    Returns:
        RegionIsolator instance
    """
    return RegionIsolator()
