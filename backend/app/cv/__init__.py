"""
Garment Image Analysis

Heuristic (model-free) attribute classification for wardrobe photos:
- Pixel decoding and region isolation
- Dominant color naming
- Texture-based material estimation
- Proportion-based garment type estimation
- Concurrent aggregation with timeout and cancellation
"""

from app.cv.pixel_source import PixelBuffer, decode_image, load_image
from app.cv.region_isolator import RegionIsolator, create_region_isolator
from app.cv.color_extractor import ColorExtractor, ColorDescriptor, create_color_extractor
from app.cv.material_classifier import MaterialClassifier, create_material_classifier
from app.cv.garment_type_classifier import GarmentTypeClassifier, TypePrediction, create_type_classifier
from app.cv.garment_analyzer import (
    ClassificationOutcome,
    ClassificationResult,
    ClassificationSession,
    ClassificationState,
    GarmentAnalyzer,
    create_garment_analyzer,
)

__all__ = [
    "PixelBuffer",
    "decode_image",
    "load_image",
    "RegionIsolator",
    "create_region_isolator",
    "ColorExtractor",
    "ColorDescriptor",
    "create_color_extractor",
    "MaterialClassifier",
    "create_material_classifier",
    "GarmentTypeClassifier",
    "TypePrediction",
    "create_type_classifier",
    "ClassificationOutcome",
    "ClassificationResult",
    "ClassificationSession",
    "ClassificationState",
    "GarmentAnalyzer",
    "create_garment_analyzer",
]
