"""
Crop identification from general-purpose image classifier labels
"""
from cropid.categories import (
    DEFAULT_MAPPING, ClassifierObservation, CropCategory, IdentificationResult, LabelMapping,
    score_observation, select_best,
)
from cropid.errors import ErrorInfo, classify_error
from cropid.resolver import CropIdentificationResolver, Resolution, ResolverStatus
