"""
Quality engine for hotel onboarding drafts.

This package provides pure, side-effect free components for:
- Per-image quality analysis (resolution, aspect ratio, exposure, blur)
- Amenity selection validation against the catalog business rules
- Room amenity inheritance from the property selection
- Per-step structural validation of wizard payloads
- Weighted listing quality score, recommendations and missing information
- Identity-keyed merge of step payloads into the draft
"""

from .image_analyzer import ImageStatistics, analyze_image, analyze_image_bytes, decode_image
from .amenity_rules import AmenityRuleValidator, PropertyTypeProfile, apply_amenity_inheritance, profile_for
from .catalog import AmenityCatalog, StaticAmenityCatalog, default_catalog
from .step_validators import StepValidator
from .score_aggregator import QualityScoreAggregator
from .merge import merge_step_payload

__all__ = [
    "ImageStatistics",
    "analyze_image",
    "analyze_image_bytes",
    "decode_image",
    "AmenityRuleValidator",
    "PropertyTypeProfile",
    "apply_amenity_inheritance",
    "profile_for",
    "AmenityCatalog",
    "StaticAmenityCatalog",
    "default_catalog",
    "StepValidator",
    "QualityScoreAggregator",
    "merge_step_payload",
]
