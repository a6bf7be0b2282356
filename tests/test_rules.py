"""
Tests for the prescription rule catalog.

Test scenarios:
1. Packaged catalog loads with unique ids
2. Rules trigger from condition tags and measurements
3. Tiers refine the base action
4. Display set is fixed-size, unique and priority ordered
"""

import json
from datetime import datetime, timezone

import pytest

from exercise_rx.exceptions import RuleCatalogError
from exercise_rx.rules import (
    PrescriptionRule,
    RuleCatalog,
    build_facts,
    default_catalog,
)
from exercise_rx.schemas import Intensity, Measurement, PartialFit, UserProfile


NOW = datetime(2026, 3, 8, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    return default_catalog()


def bg(value, fasting=True):
    return Measurement(type="bg", value={"value": value, "is_fasting": fasting}, taken_at=NOW)


def bp(systolic, diastolic):
    return Measurement(
        type="bp", value={"systolic": systolic, "diastolic": diastolic}, taken_at=NOW
    )


# Catalog loading

def test_packaged_catalog_has_unique_ids(catalog):
    ids = [rule.id for rule in catalog]
    assert len(catalog) == 18
    assert len(set(ids)) == len(ids)
    assert all(1 <= rule.priority <= 10 for rule in catalog)


def test_get_returns_rule_metadata(catalog):
    rule = catalog.get("HTN-001")
    assert rule is not None
    assert rule.evidence_source
    assert "HTN-001" in catalog
    assert catalog.get("NOPE-000") is None


def test_duplicate_ids_rejected():
    rule = PrescriptionRule(
        id="X-001",
        name="x",
        evidence_source="test",
        priority=5,
        condition="true",
        action=PartialFit(freq=3),
    )
    with pytest.raises(RuleCatalogError):
        RuleCatalog([rule, rule])


def test_invalid_condition_rejected_at_load(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "version": "test",
                "rules": [
                    {
                        "id": "BAD-001",
                        "name": "bad",
                        "evidence_source": "test",
                        "priority": 5,
                        "condition": "blood_sugar >= 7",
                        "action": {"freq": 3},
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(RuleCatalogError):
        RuleCatalog.from_file(path)


def test_missing_catalog_file(tmp_path):
    with pytest.raises(RuleCatalogError):
        RuleCatalog.from_file(tmp_path / "missing.json")


# Evaluation

def test_diabetic_elder_triggers_diabetes_and_age_rules(catalog):
    profile = UserProfile(age=68, conditions=["diabetes"])
    outputs = catalog.evaluate(profile, [bg(7.5)])

    assert [o.id for o in outputs] == ["DM-001", "AGE-001"]


def test_high_glucose_tier_overrides_base_action(catalog):
    profile = UserProfile(age=58, conditions=["diabetes"])
    dm = next(o for o in catalog.evaluate(profile, [bg(11.0)]) if o.id == "DM-001")

    assert dm.fit.freq == 5
    assert dm.fit.intensity == Intensity.LOW_MID
    assert dm.fit.time == 30


def test_base_action_without_glucose(catalog):
    profile = UserProfile(age=58, conditions=["diabetes"])
    dm = next(o for o in catalog.evaluate(profile, []) if o.id == "DM-001")

    assert dm.fit.freq == 4
    assert dm.fit.intensity == Intensity.MODERATE
    assert dm.fit.time == 35


def test_measured_hypertension_triggers_without_tag(catalog):
    profile = UserProfile(age=45)
    ids = [o.id for o in catalog.evaluate(profile, [bp(150, 85)])]
    assert "HTN-001" in ids


def test_stage_two_pressure_lowers_htn_intensity(catalog):
    profile = UserProfile(age=45, conditions=["hypertension"])
    htn = next(o for o in catalog.evaluate(profile, [bp(165, 95)]) if o.id == "HTN-001")
    assert htn.fit.intensity == Intensity.LOW


def test_outputs_sorted_by_priority(catalog):
    profile = UserProfile(
        age=70, height_cm=160, weight_kg=80, conditions=["hypertension", "stroke", "arthritis"]
    )
    priorities = [o.priority for o in catalog.evaluate(profile, [])]
    assert priorities == sorted(priorities, reverse=True)


def test_malformed_measurement_does_not_trigger(catalog):
    profile = UserProfile(age=45)
    bad = Measurement(type="bp", value={"systolic": "high", "diastolic": 95}, taken_at=NOW)
    ids = [o.id for o in catalog.evaluate(profile, [bad])]
    assert "HTN-001" not in ids


def test_central_obesity_by_waist(catalog):
    profile = UserProfile(age=45, sex="female", waist_cm=88)
    ids = [o.id for o in catalog.evaluate(profile, [])]
    assert "CO-001" in ids


def test_confidence_overrides(catalog):
    profile = UserProfile(age=30)
    outputs = catalog.evaluate(profile, [], confidence={"YNG-001": 0.5})
    assert outputs[0].id == "YNG-001"
    assert outputs[0].confidence == 0.5


def test_build_facts_splits_glucose_kind():
    profile = UserProfile(age=50)
    facts = build_facts(profile, [bg(8.0, fasting=False)])
    assert facts["random_glucose"] == 8.0
    assert facts["fasting_glucose"] is None
    assert facts["glucose_fasting"] == 0


# Display set

def test_display_set_is_fixed_size_unique_and_sorted(catalog):
    profile = UserProfile(age=68, conditions=["diabetes"])
    ids = catalog.ensure_minimum_display_set(["DM-001", "DM-001"], profile, [])

    assert len(ids) == 4
    assert len(set(ids)) == 4
    priorities = [catalog.get(i).priority for i in ids]
    assert priorities == sorted(priorities, reverse=True)
    assert "DM-001" in ids


def test_display_set_includes_age_band_even_if_not_triggered(catalog):
    """The age-band rule is display-only padding."""
    profile = UserProfile(age=30)
    ids = catalog.ensure_minimum_display_set([], profile, [])
    assert "YNG-001" in ids


def test_display_set_with_small_catalog():
    rules = [
        PrescriptionRule(
            id=f"R-00{i}",
            name=f"rule {i}",
            evidence_source="test",
            priority=i,
            condition="true",
            action=PartialFit(freq=3),
        )
        for i in (1, 2)
    ]
    small = RuleCatalog(rules)
    ids = small.ensure_minimum_display_set([], UserProfile(age=30), [])
    assert ids == ["R-002", "R-001"]
