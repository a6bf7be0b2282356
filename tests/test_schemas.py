"""
Tests for Pydantic schema validation.

Ensures that schemas properly validate data and enforce constraints.
"""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from exercise_rx.schemas import (
    AdherenceLog,
    Fit,
    GateResult,
    GateStatus,
    Intensity,
    Measurement,
    PartialFit,
    UserProfile,
)


# UserProfile Tests

def test_profile_normalizes_conditions():
    """Localized condition names become canonical tags at construction."""
    profile = UserProfile(age=60, conditions=["高血压", "unknown thing", "diabetes"])
    assert profile.conditions == {"hypertension", "diabetes"}


def test_profile_accepts_single_condition_string():
    profile = UserProfile(age=60, conditions="糖尿病")
    assert profile.conditions == {"diabetes"}


def test_profile_bmi():
    profile = UserProfile(age=40, height_cm=170, weight_kg=72.25)
    assert profile.bmi == pytest.approx(25.0)


def test_profile_bmi_unknown_without_height():
    assert UserProfile(age=40, weight_kg=70).bmi is None


def test_profile_rejects_invalid_age():
    with pytest.raises(ValidationError):
        UserProfile(age=-1)
    with pytest.raises(ValidationError):
        UserProfile(age=130)


# Measurement Tests

def test_naive_timestamp_is_treated_as_utc():
    m = Measurement(type="hr", value=70, taken_at=datetime(2026, 3, 1, 8, 0))
    assert m.taken_at.tzinfo == timezone.utc


def test_malformed_value_is_accepted_at_construction():
    """Malformed payloads are judged by the gate, not rejected here."""
    m = Measurement(type="bp", value="not a reading")
    assert m.value == "not a reading"


def test_measurement_rejects_unknown_type():
    with pytest.raises(ValidationError):
        Measurement(type="spo2", value=98)


# Enum Tests

def test_gate_status_escalation_is_monotonic():
    assert GateStatus.GREEN.escalate(GateStatus.YELLOW) is GateStatus.YELLOW
    assert GateStatus.YELLOW.escalate(GateStatus.GREEN) is GateStatus.YELLOW
    assert GateStatus.RED.escalate(GateStatus.YELLOW) is GateStatus.RED
    assert GateStatus.YELLOW.escalate(GateStatus.RED) is GateStatus.RED


def test_intensity_ordinals():
    ordered = [Intensity.VERY_LOW, Intensity.LOW, Intensity.LOW_MID, Intensity.MODERATE, Intensity.HIGH]
    assert [i.ordinal for i in ordered] == sorted(i.ordinal for i in ordered)
    assert Intensity.lowest() is Intensity.VERY_LOW


# FITT Tests

def test_fit_requires_positive_freq():
    with pytest.raises(ValidationError):
        Fit(freq=0, intensity="low", time=30, exercise_type="walking")


def test_partial_fit_merges_present_fields_only():
    base = Fit(freq=3, intensity="moderate", time=30, exercise_type="brisk walking")
    merged = PartialFit(intensity="low", time=20).merged_over(base)

    assert merged.freq == 3
    assert merged.intensity == Intensity.LOW
    assert merged.time == 20
    assert merged.exercise_type == "brisk walking"


def test_gate_result_is_frozen():
    result = GateResult(status="green")
    with pytest.raises(ValidationError):
        result.status = GateStatus.RED


# AdherenceLog Tests

def test_adherence_log_rpe_range():
    AdherenceLog(date=date(2026, 3, 1), planned_minutes=30, completed_minutes=20, rpe=10)
    with pytest.raises(ValidationError):
        AdherenceLog(date=date(2026, 3, 1), rpe=11)
