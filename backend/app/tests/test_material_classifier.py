"""
Unit tests for material classification.

Tests:
- Texture metrics on synthetic textures
- Pattern flags
- Rule table order (first match wins)
- Classifier fallbacks
"""
import numpy as np
import pytest
from unittest.mock import patch

from app.cv.cancellation import CancellationToken
from app.cv.errors import AnalysisCancelled
from app.cv.material_classifier import (
    FALLBACK_MATERIALS,
    MATERIAL_RULES,
    PatternFlags,
    SurfaceCharacteristics,
    TextureMetrics,
    TextureProfile,
    compute_texture_metrics,
    create_material_classifier,
    detect_patterns,
    match_material,
    pick_fallback_material,
)
from app.cv.taxonomy import ClothingMaterial


def make_profile(
    roughness=0.0,
    regularity=0.0,
    granularity=0.0,
    contrast=0.0,
    directionality=0.0,
    shininess=0.0,
    weave=False,
    knit=False,
    fiber=False,
    geometric=False,
    pattern_scale=0.0,
):
    """Build a texture profile with explicit values."""
    return TextureProfile(
        metrics=TextureMetrics(
            roughness=roughness,
            regularity=regularity,
            granularity=granularity,
            contrast=contrast,
            directionality=directionality,
        ),
        surface=SurfaceCharacteristics(
            shininess=shininess,
            softness=1.0 - roughness,
            thickness=contrast,
            transparency=0.0,
        ),
        patterns=PatternFlags(
            weave=weave,
            knit=knit,
            fiber=fiber,
            geometric=geometric,
            pattern_scale=pattern_scale,
        ),
    )


def without(material):
    return [rule for rule in MATERIAL_RULES if rule[0] != material]


@pytest.fixture
def classifier():
    return create_material_classifier()


@pytest.mark.unit
class TestTextureMetrics:
    """Test texture metrics on synthetic grayscale images."""

    def test_uniform_image(self):
        metrics = compute_texture_metrics(np.full((32, 32), 0.5, dtype=np.float32))

        assert metrics.roughness == pytest.approx(0.0, abs=1e-6)
        assert metrics.regularity == pytest.approx(1.0, abs=1e-6)
        assert metrics.granularity == pytest.approx(0.0, abs=1e-6)
        assert metrics.contrast == pytest.approx(0.0, abs=1e-6)
        assert metrics.directionality == 0.0

    def test_vertical_stripes_are_directional(self):
        gray = np.zeros((64, 64), dtype=np.float32)
        for start in range(0, 64, 8):
            gray[:, start:start + 4] = 1.0

        metrics = compute_texture_metrics(gray)

        assert metrics.directionality > 0.9
        assert metrics.contrast == pytest.approx(1.0)

    def test_noise_metrics_in_range(self):
        gray = np.random.default_rng(0).uniform(0, 1, size=(64, 64)).astype(np.float32)

        metrics = compute_texture_metrics(gray)

        for value in (
            metrics.roughness,
            metrics.regularity,
            metrics.granularity,
            metrics.contrast,
            metrics.directionality,
        ):
            assert 0.0 <= value <= 1.0
        assert metrics.granularity > 0.8

    def test_cancelled(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AnalysisCancelled):
            compute_texture_metrics(np.zeros((16, 16), dtype=np.float32), token=token)


@pytest.mark.unit
class TestDetectPatterns:
    """Test pattern flag thresholds."""

    def test_weave(self):
        metrics = TextureMetrics(roughness=0.3, regularity=0.3, granularity=0.1, contrast=0.1, directionality=0.3)

        flags = detect_patterns(metrics)

        assert flags.weave is True
        assert flags.knit is False
        assert flags.pattern_scale == pytest.approx(0.9)

    def test_knit(self):
        metrics = TextureMetrics(roughness=0.3, regularity=0.6, granularity=0.3, contrast=0.1, directionality=0.1)

        assert detect_patterns(metrics).knit is True

    def test_fiber(self):
        metrics = TextureMetrics(roughness=0.7, regularity=0.3, granularity=0.1, contrast=0.1, directionality=0.1)

        assert detect_patterns(metrics).fiber is True

    def test_geometric(self):
        metrics = TextureMetrics(roughness=0.3, regularity=0.8, granularity=0.1, contrast=0.4, directionality=0.1)

        assert detect_patterns(metrics).geometric is True


@pytest.mark.unit
class TestMaterialRules:
    """Test rule matching and order."""

    def test_denim_before_linen(self):
        profile = make_profile(
            roughness=0.7, granularity=0.45, directionality=0.4, weave=True, pattern_scale=0.55
        )

        assert match_material(profile) == ClothingMaterial.DENIM
        assert match_material(profile, without(ClothingMaterial.DENIM)) == ClothingMaterial.LINEN

    def test_silk_before_polyester(self):
        profile = make_profile(roughness=0.1, contrast=0.1, shininess=0.7, regularity=0.9)

        assert match_material(profile) == ClothingMaterial.SILK
        assert match_material(profile, without(ClothingMaterial.SILK)) == ClothingMaterial.POLYESTER

    def test_linen_before_cotton(self):
        profile = make_profile(roughness=0.47, weave=True, pattern_scale=0.6, shininess=0.3)

        assert match_material(profile) == ClothingMaterial.LINEN
        assert match_material(profile, without(ClothingMaterial.LINEN)) == ClothingMaterial.COTTON

    def test_wool(self):
        profile = make_profile(roughness=0.7, directionality=0.1, fiber=True, contrast=0.5)

        assert match_material(profile) == ClothingMaterial.WOOL

    def test_no_match_is_unknown(self):
        profile = make_profile(roughness=0.5, shininess=0.5, regularity=0.3)

        assert match_material(profile) == ClothingMaterial.UNKNOWN


@pytest.mark.unit
class TestFallbackPool:
    """Test the weighted fallback pick."""

    def test_pick_in_pool(self):
        pool = {material for material, _ in FALLBACK_MATERIALS}

        picks = {pick_fallback_material(np.random.default_rng(seed)) for seed in range(50)}

        assert picks <= pool

    def test_weights_sum_to_one(self):
        assert sum(weight for _, weight in FALLBACK_MATERIALS) == pytest.approx(1.0)


@pytest.mark.unit
class TestMaterialClassifier:
    """Test the classifier on synthetic frames."""

    def test_flat_gray_is_polyester(self, classifier, frame_factory):
        analysis = classifier.analyze(frame_factory(64, 64, (128, 128, 128)))

        assert analysis.method == "rules"
        assert analysis.material == ClothingMaterial.POLYESTER

    def test_flat_dark_is_cotton(self, classifier, frame_factory):
        assert classifier.classify(frame_factory(64, 64, (50, 50, 50))) == ClothingMaterial.COTTON

    def test_flat_bright_is_silk(self, classifier, frame_factory):
        assert classifier.classify(frame_factory(64, 64, (230, 230, 230))) == ClothingMaterial.SILK

    def test_single_pixel_uses_fallback(self, classifier, frame_factory):
        frame = frame_factory(1, 1, (90, 60, 30))

        first = classifier.analyze(frame)
        second = classifier.analyze(frame)

        assert first.method == "fallback"
        assert first.material in {material for material, _ in FALLBACK_MATERIALS}
        assert first.material == second.material

    def test_metric_failure_uses_fallback(self, classifier, frame_factory):
        with patch(
            "app.cv.material_classifier.compute_texture_metrics",
            side_effect=RuntimeError("opencv exploded"),
        ):
            analysis = classifier.analyze(frame_factory(64, 64))

        assert analysis.method == "fallback"
        assert analysis.profile is None

    def test_cancelled_token_unwinds(self, classifier, frame_factory):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AnalysisCancelled):
            classifier.classify(frame_factory(64, 64), token)
