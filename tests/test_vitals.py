"""
Tests for vital-sign parsing and classification helpers.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from exercise_rx.exceptions import InvalidMeasurementError
from exercise_rx.schemas import Measurement, MeasurementType
from exercise_rx.vitals import (
    bp_stage,
    classify_bmi,
    coerce_number,
    has_central_obesity,
    latest_by_type,
    latest_vitals,
)


NOW = datetime(2026, 3, 8, 8, 0, tzinfo=timezone.utc)


def test_coerce_number():
    assert coerce_number(120, "bp", "systolic") == 120.0
    assert coerce_number("7.5", "bg", "value") == 7.5
    assert coerce_number(None, "bp", "systolic") is None
    assert coerce_number("  ", "bp", "systolic") is None


@pytest.mark.parametrize("value", [True, "abc", math.inf, [1], {"a": 1}])
def test_coerce_number_rejects(value):
    with pytest.raises(InvalidMeasurementError):
        coerce_number(value, "hr", "value")


def test_latest_by_type_picks_most_recent():
    old = Measurement(type="hr", value=60, taken_at=NOW - timedelta(hours=1))
    new = Measurement(type="hr", value=80, taken_at=NOW)
    untimed = Measurement(type="hr", value=200)

    latest = latest_by_type([new, untimed, old])
    assert latest[MeasurementType.HEART_RATE].value == 80


def test_latest_vitals_accepts_alternate_keys():
    readings = [
        Measurement(type="bp", value={"sbp": 150, "dbp": 95}, taken_at=NOW),
        Measurement(type="bg", value={"value": 6.0, "isFasting": True}, taken_at=NOW),
        Measurement(type="hr", value={"value": 72}, taken_at=NOW),
    ]
    vitals = latest_vitals(readings)

    assert (vitals.systolic, vitals.diastolic) == (150.0, 95.0)
    assert vitals.glucose == 6.0
    assert vitals.glucose_fasting is True
    assert vitals.heart_rate == 72.0


def test_bare_glucose_is_random():
    vitals = latest_vitals([Measurement(type="bg", value=9.0, taken_at=NOW)])
    assert vitals.glucose == 9.0
    assert vitals.glucose_fasting is False


def test_strict_and_lenient_parsing():
    bad = Measurement(type="bp", value="120/80", taken_at=NOW)
    with pytest.raises(InvalidMeasurementError):
        latest_vitals([bad])

    vitals = latest_vitals([bad], strict=False)
    assert vitals.has_blood_pressure is False


@pytest.mark.parametrize(
    "bmi, expected",
    [(None, "unknown"), (17.0, "underweight"), (22.0, "normal"), (24.0, "overweight"), (28.0, "obese")],
)
def test_classify_bmi(bmi, expected):
    assert classify_bmi(bmi) == expected


@pytest.mark.parametrize(
    "systolic, diastolic, expected",
    [
        (None, None, "unknown"),
        (118, 76, "normal"),
        (132, 80, "high_normal"),
        (145, 85, "stage_1"),
        (120, 100, "stage_2"),
        (180, None, "stage_3"),
    ],
)
def test_bp_stage(systolic, diastolic, expected):
    assert bp_stage(systolic, diastolic) == expected


def test_central_obesity_cutoffs():
    assert has_central_obesity("male", 90) is True
    assert has_central_obesity("male", 89) is False
    assert has_central_obesity("female", 85) is True
    assert has_central_obesity("other", 120) is False
    assert has_central_obesity("female", None) is False
