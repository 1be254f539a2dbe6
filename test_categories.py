"""
Tests for the label-to-category table and best-match selection
"""
import pytest

from cropid.categories import (
    DEFAULT_MAPPING, ClassifierObservation, CropCategory, IdentificationResult, LabelMapping,
    fallback_result, score_observation, select_best,
)


def obs(label, score):
    return ClassifierObservation(label=label, score=score)


def test_default_mapping_categories_in_order():
    ids = [c.id for c in DEFAULT_MAPPING.categories]
    assert ids == ["alface", "mandioca", "tomate", "cenoura", "milho"]
    assert DEFAULT_MAPPING.fallback == CropCategory("alface", "Alface")


def test_empty_mapping_rejected():
    with pytest.raises(ValueError):
        LabelMapping(())


@pytest.mark.parametrize("label, crop_id", [
    ("head cabbage", "alface"),
    ("Lettuce", "alface"),
    ("cassava root", "mandioca"),
    ("sweet potato", "mandioca"),
    ("cherry tomato", "tomate"),
    ("carrot", "cenoura"),
    ("corn", "milho"),
    ("ear, spike, capitulum", "milho"),
    ("MAIZE field", "milho"),
])
def test_score_observation_matches_by_substring(label, crop_id):
    category, score = score_observation(obs(label, 0.7), DEFAULT_MAPPING)
    assert category.id == crop_id
    assert score == 0.7


def test_score_observation_no_match():
    assert score_observation(obs("unrelated object", 0.99), DEFAULT_MAPPING) is None


def test_substring_match_is_not_tokenized():
    # "ear" is contained in "brown bear"
    category, _ = score_observation(obs("brown bear", 0.5), DEFAULT_MAPPING)
    assert category.id == "milho"


def test_first_declared_key_wins():
    # "tomato" is declared before "corn"
    category, _ = score_observation(obs("corn and tomato salad", 0.5), DEFAULT_MAPPING)
    assert category.id == "tomate"


def test_select_best_lettuce():
    assert select_best([obs("lettuce", 0.9)], DEFAULT_MAPPING) == IdentificationResult("alface", "Alface", 0.9)


def test_select_best_no_match_keeps_fallback():
    result = select_best([obs("unrelated object", 0.99)], DEFAULT_MAPPING)
    assert result == IdentificationResult("alface", "Alface", 0.3)


def test_select_best_empty_is_fallback():
    assert select_best([], DEFAULT_MAPPING) == fallback_result(DEFAULT_MAPPING)


def test_select_best_same_category_aliases():
    result = select_best([obs("tomato", 0.4), obs("red pepper", 0.4)], DEFAULT_MAPPING)
    assert result == IdentificationResult("tomate", "Tomate", 0.4)


def test_select_best_tie_keeps_first_seen():
    result = select_best([obs("carrot", 0.6), obs("corn", 0.6)], DEFAULT_MAPPING)
    assert result.crop_id == "cenoura"


def test_select_best_higher_score_replaces():
    result = select_best([obs("carrot", 0.5), obs("maize", 0.8), obs("cassava", 0.7)], DEFAULT_MAPPING)
    assert result == IdentificationResult("milho", "Milho", 0.8)


def test_score_equal_to_fallback_does_not_replace():
    result = select_best([obs("corn", 0.3)], DEFAULT_MAPPING)
    assert result == IdentificationResult("alface", "Alface", 0.3)


def test_low_scores_never_beat_fallback():
    result = select_best([obs("corn", 0.1), obs("tomato", 0.29)], DEFAULT_MAPPING)
    assert result.crop_id == "alface"
    assert result.confidence == 0.3


def test_select_best_is_deterministic():
    observations = [obs("carrot", 0.5), obs("corn", 0.5), obs("tomato", 0.45)]
    assert select_best(observations, DEFAULT_MAPPING) == select_best(observations, DEFAULT_MAPPING)


def test_custom_mapping():
    wheat = CropCategory("trigo", "Trigo")
    rice = CropCategory("arroz", "Arroz")
    mapping = LabelMapping.from_pairs([("wheat", wheat), ("rice", rice), ("paddy", rice)])

    assert select_best([], mapping).crop_id == "trigo"
    assert select_best([obs("paddy field", 0.8)], mapping) == IdentificationResult("arroz", "Arroz", 0.8)
    assert mapping.categories == [wheat, rice]


def test_result_wire_format():
    assert IdentificationResult("milho", "Milho", 0.8).to_dict() == {
        "cropId": "milho", "cropName": "Milho", "confidence": 0.8,
    }
