"""Feature extraction exports."""

from .extractor import Criteria, FeatureExtractor, LeadValues
from .schema import KNOWN_FIELDS, QUALITY_FIELDS, STAGE_FIELD, TAG_FIELD, frequency_value

__all__ = [
    "Criteria",
    "FeatureExtractor",
    "KNOWN_FIELDS",
    "LeadValues",
    "QUALITY_FIELDS",
    "STAGE_FIELD",
    "TAG_FIELD",
    "frequency_value",
]
