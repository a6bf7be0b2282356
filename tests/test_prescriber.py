"""
Tests for prescription orchestration.

Test scenarios:
1. Elderly diabetic: diabetes and age rules fused to a conservative FITT
2. Hypertensive crisis: red gate forces the lowest intensity
3. Healthy adult: single age-band rule
4. Legacy mode, alpha = 0 and no-rule fallbacks
"""

import json
from pathlib import Path
from typing import List

import pytest
from pydantic import TypeAdapter

from exercise_rx.config import FusionConfig
from exercise_rx.prescriber import (
    PrescriptionOrchestrator,
    apply_red_override,
    baseline_fit,
    generate_prescription,
    has_cardiovascular_risk,
)
from exercise_rx.rules import RuleCatalog
from exercise_rx.schemas import Fit, GateStatus, Intensity, Measurement, UserProfile


FIXTURES = Path(__file__).parent / "fixtures"


def load_profile(name: str) -> UserProfile:
    with open(FIXTURES / name, encoding="utf-8") as f:
        return UserProfile(**json.load(f))


def load_measurements(name: str) -> List[Measurement]:
    with open(FIXTURES / name, encoding="utf-8") as f:
        return TypeAdapter(List[Measurement]).validate_python(json.load(f))


@pytest.fixture
def config():
    return FusionConfig(use_fusion=True, alpha=1.0, beta=0.1, kernel_init=0.0)


@pytest.fixture
def orchestrator(config):
    return PrescriptionOrchestrator(config=config)


@pytest.fixture
def elderly_diabetic():
    return (
        load_profile("profile_elderly_diabetic.json"),
        load_measurements("measurements_elderly_diabetic.json"),
    )


@pytest.fixture
def hypertensive_crisis():
    return (
        load_profile("profile_hypertensive.json"),
        load_measurements("measurements_hypertensive_crisis.json"),
    )


def test_elderly_diabetic_prescription(orchestrator, elderly_diabetic):
    """
    TEST_CASE_001: Diabetes + age >= 65

    Fasting glucose 7.5 triggers the high-glucose tier of the diabetes rule
    alongside the older-adult rule; the fused result stays conservative.
    """
    profile, measurements = elderly_diabetic
    rx = orchestrator.generate(profile, measurements)

    assert set(rx.rule_ids) == {"DM-001", "AGE-001"}
    assert rx.fusion_mode == "fusion"
    assert rx.fit.intensity in {Intensity.LOW, Intensity.LOW_MID, Intensity.MODERATE}
    assert rx.fit.time <= 45
    assert rx.fit.freq == 4
    assert rx.fit.time == 30
    assert rx.fit.intensity == Intensity.LOW_MID
    assert rx.gate.status == GateStatus.GREEN
    assert rx.id.startswith("rx_")


def test_hypertensive_crisis_forces_lowest_intensity(orchestrator, hypertensive_crisis):
    """
    TEST_CASE_002: Blood pressure 180/110 with hypertension

    The gate is red, intensity drops to the lowest tier, and the
    hypertension rule is among the top contributors.
    """
    profile, measurements = hypertensive_crisis
    rx = orchestrator.generate(profile, measurements)

    assert rx.gate.status == GateStatus.RED
    assert rx.fit.intensity == Intensity.lowest()
    assert "HTN-001" in [score.id for score in rx.explain.top]
    assert rx.fit.freq == 3
    assert rx.fit.time == 27


def test_healthy_adult_single_rule(orchestrator):
    profile = load_profile("profile_healthy_adult.json")
    rx = orchestrator.generate(profile, [])

    assert rx.rule_ids == ["MID-001"]
    assert rx.fit.freq == 4
    assert rx.fit.time == 35
    assert rx.fit.intensity == Intensity.MODERATE
    assert rx.baseline_fit.intensity == Intensity.MODERATE


def test_display_rules_have_fixed_size(orchestrator, elderly_diabetic):
    profile, measurements = elderly_diabetic
    rx = orchestrator.generate(profile, measurements)

    assert len(rx.rule_ids_for_display) == 4
    assert len(set(rx.rule_ids_for_display)) == 4
    assert set(rx.rule_ids) <= set(rx.rule_ids_for_display)


def test_legacy_mode_last_rule_wins(config, elderly_diabetic):
    profile, measurements = elderly_diabetic
    legacy = config.model_copy(update={"use_fusion": False})
    rx = PrescriptionOrchestrator(config=legacy).generate(profile, measurements)

    # Priority order is DM-001 (8) then AGE-001 (7); the later rule overwrites
    assert rx.fusion_mode == "legacy"
    assert rx.explain is None
    assert rx.fit.freq == 3
    assert rx.fit.time == 30
    assert rx.fit.intensity == Intensity.LOW
    assert rx.fit.exercise_type == "tai chi + walking"


def test_zero_alpha_returns_baseline(config, elderly_diabetic):
    profile, measurements = elderly_diabetic
    zero = config.model_copy(update={"alpha": 0.0})
    rx = PrescriptionOrchestrator(config=zero).generate(profile, measurements)

    assert rx.fusion_mode == "baseline"
    assert rx.fit == rx.baseline_fit
    assert rx.fit.freq == 3
    assert rx.fit.time == 30
    assert rx.fit.intensity == Intensity.LOW


def test_no_triggered_rules_returns_baseline(config):
    catalog = RuleCatalog([])
    profile = UserProfile(age=30)
    rx = PrescriptionOrchestrator(catalog=catalog, config=config).generate(profile, [])

    assert rx.fusion_mode == "baseline"
    assert rx.rule_ids == []
    assert rx.rule_ids_for_display == []
    assert rx.fit.exercise_type == "brisk walking"


@pytest.mark.parametrize(
    "profile, expected",
    [
        (UserProfile(age=30, height_cm=170, weight_kg=60), Intensity.MODERATE),
        (UserProfile(age=55), Intensity.LOW_MID),
        (UserProfile(age=30, height_cm=170, weight_kg=75), Intensity.LOW_MID),
        (UserProfile(age=30, height_cm=170, weight_kg=90), Intensity.LOW),
        (UserProfile(age=66), Intensity.LOW),
        (UserProfile(age=30, conditions=["stroke"]), Intensity.LOW),
    ],
)
def test_baseline_intensity(profile, expected):
    fit = baseline_fit(profile, [])
    assert fit.intensity == expected
    assert (fit.freq, fit.time) == (3, 30)


def test_cardiovascular_risk_from_pressure():
    profile = UserProfile(age=30)
    high = load_measurements("measurements_hypertensive_crisis.json")
    assert has_cardiovascular_risk(profile, high) is True
    assert has_cardiovascular_risk(profile, []) is False


def test_red_override_floors():
    fit = Fit(freq=1, intensity="moderate", time=25, exercise_type="swimming")
    reduced = apply_red_override(fit)

    assert reduced.freq == 1
    assert reduced.time == 20
    assert reduced.intensity == Intensity.VERY_LOW
    assert reduced.exercise_type == "swimming"


def test_module_helper_with_explicit_config(config, elderly_diabetic):
    profile, measurements = elderly_diabetic
    rx = generate_prescription(profile, measurements, config=config)
    assert rx.fusion_mode == "fusion"


def test_measurement_order_does_not_matter(orchestrator, hypertensive_crisis):
    profile, measurements = hypertensive_crisis
    forward = orchestrator.generate(profile, measurements)
    backward = orchestrator.generate(profile, list(reversed(measurements)))
    assert forward.fit == backward.fit
