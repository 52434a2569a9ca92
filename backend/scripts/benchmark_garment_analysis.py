"""
Benchmark Garment Analysis Pipeline

Classifies synthetic garment photos and reports outcome rates, confidence
and latency against the analysis time budget.

Usage:
    python backend/scripts/benchmark_garment_analysis.py [--photos 50] [--size 1280x960]

Validation Criteria:
- No timeouts at the configured budget
- Success rate (confidence above threshold) >90%
- Median latency well inside the budget (<1 s at 1280x960)
"""
import argparse
import sys
import time
from collections import Counter
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import logging

from app.core.config import settings
from app.cv.garment_analyzer import ClassificationSession, ClassificationState, create_garment_analyzer
from app.cv.pixel_source import PixelBuffer

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Garment silhouettes as (width, height) fractions of the photo
SILHOUETTES = [
    (0.8, 0.4),  # Folded pants, wide
    (0.6, 0.6),  # Shirt laid flat
    (0.4, 0.8),  # Dress on a hanger
    (0.6, 0.75),  # Jacket
]


def generate_synthetic_photos(num_photos: int, width: int, height: int, seed: int = 0) -> list:
    """
    Generate synthetic garment photos.

    Each photo is a noisy, optionally striped garment silhouette on a light
    backdrop, with a random photo orientation so every type rule is reached.
    """
    rng = np.random.default_rng(seed)
    photos = []

    for i in range(num_photos):
        w, h = (width, height) if rng.random() < 0.5 else (height, width)
        photo = np.full((h, w, 3), rng.integers(225, 250), dtype=np.uint8)

        fw, fh = SILHOUETTES[i % len(SILHOUETTES)]
        gw, gh = int(w * fw), int(h * fh)
        x, y = (w - gw) // 2, (h - gh) // 2

        base = rng.integers(20, 220, size=3)
        noise = rng.normal(0, rng.uniform(2, 25), size=(gh, gw, 3))
        garment = np.clip(base + noise, 0, 255)

        if rng.random() < 0.5:
            # Weave-like stripes
            garment[::int(rng.integers(3, 8))] *= 0.75

        photo[y:y + gh, x:x + gw] = garment.astype(np.uint8)
        photos.append(PixelBuffer.from_array(photo))

    logger.info(f"Generated {len(photos)} synthetic garment photos")
    return photos


def benchmark_garment_analysis(num_photos: int, width: int, height: int):
    """
    Benchmark the classification pipeline.

    Reports:
    - Outcome counts (succeeded / failed / timed out)
    - Type and material distribution
    - Latency percentiles
    """
    logger.info("=" * 60)
    logger.info("Garment Analysis Benchmark")
    logger.info("=" * 60)

    logger.info("\n1. Initializing GarmentAnalyzer...")
    analyzer = create_garment_analyzer(settings.ANALYSIS_MAX_WORKERS)
    session = ClassificationSession(
        analyzer,
        timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
        min_confidence=settings.ANALYSIS_MIN_CONFIDENCE,
    )
    logger.info(
        f"   ✓ Budget {settings.ANALYSIS_TIMEOUT_SECONDS:.1f}s, "
        f"threshold {settings.ANALYSIS_MIN_CONFIDENCE:.2f}, {settings.ANALYSIS_MAX_WORKERS} workers"
    )

    logger.info("\n2. Generating test photos...")
    photos = generate_synthetic_photos(num_photos, width, height)

    logger.info("\n3. Classifying...")
    outcomes = Counter()
    types = Counter()
    materials = Counter()
    confidences = []
    times = []

    try:
        for photo in photos:
            start = time.perf_counter()
            outcome = session.classify(photo)
            times.append((time.perf_counter() - start) * 1000)  # ms

            outcomes[outcome.state.value] += 1
            if outcome.result is not None:
                types[outcome.result.type.value] += 1
                materials[outcome.result.material.value] += 1
                confidences.append(outcome.result.confidence)
    finally:
        analyzer.shutdown()

    logger.info(f"\n{'='*60}")
    logger.info("OUTCOMES")
    logger.info(f"{'='*60}")
    for state in ClassificationState:
        if outcomes[state.value]:
            logger.info(f"{state.value:<12} {outcomes[state.value]}")
    logger.info(f"Types:      {dict(types.most_common())}")
    logger.info(f"Materials:  {dict(materials.most_common())}")
    if confidences:
        logger.info(f"Confidence: mean {np.mean(confidences):.3f}, min {np.min(confidences):.3f}")

    logger.info(f"\n{'='*60}")
    logger.info("PERFORMANCE")
    logger.info(f"{'='*60}")
    logger.info(f"Median latency: {np.percentile(times, 50):.1f} ms")
    logger.info(f"P95 latency:    {np.percentile(times, 95):.1f} ms")
    logger.info(f"Max latency:    {np.max(times):.1f} ms")

    success_rate = outcomes[ClassificationState.SUCCEEDED.value] / len(photos)
    target_rate = 0.90

    logger.info(f"\n{'='*60}")
    logger.info("DECISION CHECKPOINT")
    logger.info(f"{'='*60}")
    if outcomes[ClassificationState.TIMED_OUT.value]:
        logger.warning(f"✗ {outcomes[ClassificationState.TIMED_OUT.value]} photos timed out")
    if success_rate >= target_rate:
        logger.info(f"✓ SUCCESS: {success_rate:.1%} >= {target_rate:.1%}")
    else:
        logger.warning(f"✗ BELOW TARGET: {success_rate:.1%} < {target_rate:.1%}")

    logger.info(f"\n{'='*60}")
    logger.info("Benchmark Complete!")
    logger.info(f"{'='*60}\n")


def parse_size(value: str):
    width, height = value.lower().split("x")
    return int(width), int(height)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Benchmark garment photo classification")
    parser.add_argument("--photos", type=int, default=50, help="Number of synthetic photos")
    parser.add_argument("--size", type=parse_size, default=(1280, 960), help="Photo size as WIDTHxHEIGHT")
    args = parser.parse_args()

    try:
        benchmark_garment_analysis(args.photos, *args.size)
    except KeyboardInterrupt:
        logger.info("\nBenchmark interrupted by user")
    except Exception as e:
        logger.error(f"\nBenchmark failed with error: {e}", exc_info=True)
        sys.exit(1)
