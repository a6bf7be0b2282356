"""
Tests for condition normalization.

Ensures localized and free-text names map to canonical tags, unknown text is
dropped, and normalization is idempotent.
"""

import pytest

from exercise_rx.conditions import (
    CANONICAL_TAGS,
    display_label,
    extract_from_text,
    normalize,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("高血压", "hypertension"),
        ("糖尿病", "diabetes"),
        ("冠心病", "coronary_heart_disease"),
        ("Type 2 Diabetes", "diabetes"),
        ("high blood pressure", "hypertension"),
        ("膝关节骨关节炎", "knee_osteoarthritis"),
        ("CAD", "coronary_heart_disease"),
        ("stroke", "stroke"),
    ],
)
def test_known_names_map_to_canonical_tags(raw, expected):
    assert normalize([raw]) == {expected}


def test_knee_osteoarthritis_is_not_generic_arthritis():
    """The more specific keyword rule must win."""
    assert normalize(["knee osteoarthritis"]) == {"knee_osteoarthritis"}


def test_unknown_text_is_dropped():
    assert normalize(["something unrelated", "", None, "   "]) == set()


def test_normalize_is_idempotent():
    first = normalize(["高血压", "糖尿病", "肥胖", "心绞痛"])
    assert normalize(first) == first
    assert first <= CANONICAL_TAGS


def test_abbreviations_match_whole_tokens_only():
    """'cad' inside a longer word must not be read as coronary disease."""
    assert extract_from_text("over the last decade") == set()
    assert extract_from_text("history: htn, t2dm") == {"hypertension", "diabetes"}


def test_extract_from_text_collects_every_condition():
    tags = extract_from_text("Patient has hypertension and type 2 diabetes; 骨质疏松")
    assert {"hypertension", "diabetes", "osteoporosis"} <= tags


def test_extract_from_empty_text():
    assert extract_from_text(None) == set()
    assert extract_from_text("") == set()


def test_display_label_falls_back_to_tag():
    assert display_label("hypertension") == "高血压"
    assert display_label("unknown_tag") == "unknown_tag"
    assert display_label("hypertension", locale="fr") == "hypertension"
