"""
Crop categories and the label-to-category mapping table

Translates the open ImageNet-style vocabulary of a general classifier
("head cabbage", "ear, spike, capitulum", ...) into the handful of crops
the service supports.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from cropid.config import CROP_CATEGORIES, FALLBACK_CONFIDENCE, LABEL_KEYS


@dataclass(frozen=True)
class CropCategory:
    id: str
    display_name: str


@dataclass(frozen=True)
class ClassifierObservation:
    """One ranked (label, score) output of the classifier."""

    label: str
    score: float


@dataclass(frozen=True)
class IdentificationResult:
    crop_id: str
    crop_name: str
    confidence: float

    def to_dict(self):
        return {
            "cropId": self.crop_id,
            "cropName": self.crop_name,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class LabelMapping:
    """
    Ordered, immutable table of lexical key -> crop category.

    Several keys may point to the same category. Declaration order decides
    which key wins when a label contains more than one, and the category of
    the first entry is the fallback identity.
    """

    entries: Tuple[Tuple[str, CropCategory], ...]

    def __post_init__(self):
        if not self.entries:
            raise ValueError("LabelMapping needs at least one entry")

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, CropCategory]]) -> "LabelMapping":
        return cls(tuple((key, category) for key, category in pairs))

    @property
    def fallback(self) -> CropCategory:
        return self.entries[0][1]

    @property
    def categories(self) -> List[CropCategory]:
        """Distinct categories in declaration order."""
        seen = []
        for _, category in self.entries:
            if category not in seen:
                seen.append(category)
        return seen


def build_default_mapping() -> LabelMapping:
    """Build the mapping from the crop tables in config."""
    by_id = {crop_id: CropCategory(crop_id, name) for crop_id, name in CROP_CATEGORIES}
    return LabelMapping.from_pairs((key, by_id[crop_id]) for key, crop_id in LABEL_KEYS)


DEFAULT_MAPPING = build_default_mapping()


def score_observation(
    observation: ClassifierObservation, mapping: LabelMapping
) -> Optional[Tuple[CropCategory, float]]:
    """
    Match one observation against the table.

    The label is lowercased and every key is tested for substring
    containment in declaration order; the first contained key selects the
    category. Returns None when no key matches.
    """
    label = observation.label.lower()
    for key, category in mapping.entries:
        if key in label:
            return category, observation.score
    return None


def fallback_result(
    mapping: LabelMapping, confidence: float = FALLBACK_CONFIDENCE
) -> IdentificationResult:
    category = mapping.fallback
    return IdentificationResult(category.id, category.display_name, confidence)


def select_best(
    observations: Sequence[ClassifierObservation],
    mapping: LabelMapping,
    fallback_confidence: float = FALLBACK_CONFIDENCE,
) -> IdentificationResult:
    """
    Pick the best supported crop among the classifier observations.

    Starts from the fallback identity and only replaces the running best
    with a strictly higher score, so equal scores keep the first one seen.
    """
    best = fallback_result(mapping, fallback_confidence)
    for observation in observations:
        candidate = score_observation(observation, mapping)
        if candidate is None:
            continue
        category, score = candidate
        if score > best.confidence:
            best = IdentificationResult(category.id, category.display_name, score)
    return best
