"""
Unit tests for garment region isolation.
"""
import cv2
import numpy as np
import pytest
from unittest.mock import patch

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.pixel_source import PixelBuffer
from app.cv.region_isolator import (
    COLOR_CONSTRAINTS,
    TEXTURE_CONSTRAINTS,
    RegionIsolator,
    create_region_isolator,
)


@pytest.fixture
def isolator():
    return create_region_isolator()


@pytest.fixture
def framed_garment():
    """Dark rectangle on a white backdrop."""
    pixels = np.full((200, 200, 3), 245, dtype=np.uint8)
    pixels[30:170, 40:160] = (40, 50, 90)
    return PixelBuffer.from_array(pixels)


@pytest.mark.unit
class TestFallbackBox:
    """Test the centered fallback rectangle."""

    def test_centered(self):
        assert RegionIsolator.fallback_box(100, 50, 0.6) == (20, 10, 60, 30)

    def test_never_empty(self):
        assert RegionIsolator.fallback_box(1, 1, 0.5) == (0, 0, 1, 1)


@pytest.mark.unit
class TestSelectLargest:
    """Test candidate selection."""

    def test_largest_wins(self):
        assert RegionIsolator.select_largest([(0, 0, 5, 5), (0, 0, 10, 10)]) == (0, 0, 10, 10)

    def test_tie_keeps_first(self):
        assert RegionIsolator.select_largest([(0, 0, 10, 10), (5, 5, 10, 10)]) == (0, 0, 10, 10)

    def test_no_candidates(self):
        assert RegionIsolator.select_largest([]) is None


@pytest.mark.unit
class TestIsolate:
    """Test region isolation on synthetic frames."""

    def test_uniform_frame_falls_back(self, isolator, frame_factory):
        region = isolator.isolate(frame_factory(100, 100), COLOR_CONSTRAINTS)

        assert region.method == "fallback"
        assert region.box == (20, 20, 60, 60)
        assert region.pixels.shape == (60, 60, 3)

    def test_texture_fallback_fraction(self, isolator, frame_factory):
        region = isolator.isolate(frame_factory(100, 100), TEXTURE_CONSTRAINTS)

        assert region.box == (25, 25, 50, 50)

    def test_tiny_frame_skips_detection(self, isolator, frame_factory):
        with patch.object(isolator, "detect_candidates") as detect:
            region = isolator.isolate(frame_factory(8, 8), COLOR_CONSTRAINTS)

        detect.assert_not_called()
        assert region.method == "fallback"

    def test_detects_garment(self, isolator, framed_garment):
        region = isolator.isolate(framed_garment, COLOR_CONSTRAINTS)

        assert region.method == "detected"
        x, y, w, h = region.box
        assert abs(x - 40) <= 6
        assert abs(y - 30) <= 6
        assert abs((x + w) - 160) <= 6
        assert abs((y + h) - 170) <= 6
        assert region.pixels.shape == (h, w, 3)

    def test_detection_error_falls_back(self, isolator, framed_garment):
        with patch("app.cv.region_isolator.cv2.Canny", side_effect=RuntimeError("boom")):
            region = isolator.isolate(framed_garment, COLOR_CONSTRAINTS)

        assert region.method == "fallback"
        assert region.box == (40, 40, 120, 120)

    def test_small_object_ignored(self, isolator):
        """Objects below the relative size floor are not candidates."""
        pixels = np.full((200, 200, 3), 245, dtype=np.uint8)
        pixels[90:110, 90:110] = 20

        region = isolator.isolate(PixelBuffer.from_array(pixels), COLOR_CONSTRAINTS)

        assert region.method == "fallback"

    def test_cancelled_token_is_not_swallowed(self, isolator, framed_garment):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AnalysisCancelled):
            isolator.isolate(framed_garment, COLOR_CONSTRAINTS, token)

    def test_cancel_stops_detection_between_steps(self, isolator, framed_garment):
        token = CancellationToken()
        real_canny = cv2.Canny

        def cancelling_canny(*args, **kwargs):
            token.cancel()
            return real_canny(*args, **kwargs)

        with patch("app.cv.region_isolator.cv2.Canny", side_effect=cancelling_canny), \
                patch("app.cv.region_isolator.cv2.findContours") as find_contours:
            with pytest.raises(AnalysisCancelled):
                isolator.isolate(framed_garment, COLOR_CONSTRAINTS, token)

        find_contours.assert_not_called()
