"""
Vital-sign helpers shared by the safety gate, the rule catalog and the
orchestrator.

Measurement lists arrive unordered; everything here works on the most recent
reading of each type (by `taken_at`). Readings without a timestamp are ignored.
"""

import logging
import math
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from exercise_rx.exceptions import InvalidMeasurementError
from exercise_rx.schemas import Measurement, MeasurementType

logger = logging.getLogger(__name__)


# Chinese adult BMI bands (kg/m^2)
BMI_OVERWEIGHT = 24.0
BMI_OBESE = 28.0

# Chinese adult central-obesity waist cut-offs (cm)
WAIST_CUTOFFS = {"male": 90.0, "female": 85.0}


class LatestVitals(BaseModel):
    """Most recent parsed value of each vital sign (None when absent)."""

    systolic: Optional[float] = None
    diastolic: Optional[float] = None
    glucose: Optional[float] = None
    glucose_fasting: bool = False
    heart_rate: Optional[float] = None

    @property
    def has_blood_pressure(self) -> bool:
        return self.systolic is not None or self.diastolic is not None


def coerce_number(value: Any, measurement_type: str, field: str) -> Optional[float]:
    """
    Convert a reading field to float.

    Returns None for a missing field. Raises InvalidMeasurementError when the
    field is present but not a finite number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidMeasurementError(measurement_type, f"{field} is a boolean")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value)
        except ValueError:
            raise InvalidMeasurementError(measurement_type, f"{field}={value!r} is not numeric")
    else:
        raise InvalidMeasurementError(
            measurement_type, f"{field} has unsupported type {type(value).__name__}"
        )

    if not math.isfinite(number):
        raise InvalidMeasurementError(measurement_type, f"{field} is not finite")
    return number


def latest_by_type(measurements: Iterable[Measurement]) -> Dict[MeasurementType, Measurement]:
    """Pick the most recent timestamped measurement of each type."""
    latest: Dict[MeasurementType, Measurement] = {}
    for measurement in measurements or []:
        if measurement is None or measurement.taken_at is None:
            continue
        current = latest.get(measurement.type)
        if current is None or measurement.taken_at > current.taken_at:
            latest[measurement.type] = measurement
    return latest


def _parse_blood_pressure(value: Any) -> Dict[str, Optional[float]]:
    if value is None:
        return {"systolic": None, "diastolic": None}
    if not isinstance(value, dict):
        raise InvalidMeasurementError("bp", "expected {systolic, diastolic}")
    systolic = value.get("systolic", value.get("sbp"))
    diastolic = value.get("diastolic", value.get("dbp"))
    return {
        "systolic": coerce_number(systolic, "bp", "systolic"),
        "diastolic": coerce_number(diastolic, "bp", "diastolic"),
    }


def _parse_blood_glucose(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        fasting = value.get("is_fasting", value.get("isFasting"))
        return {
            "glucose": coerce_number(value.get("value"), "bg", "value"),
            # unlabelled readings are judged against the random-glucose band
            "glucose_fasting": fasting is True,
        }
    return {"glucose": coerce_number(value, "bg", "value"), "glucose_fasting": False}


def _parse_heart_rate(value: Any) -> Dict[str, Optional[float]]:
    if isinstance(value, dict):
        value = value.get("value")
    return {"heart_rate": coerce_number(value, "hr", "value")}


_PARSERS = {
    MeasurementType.BLOOD_PRESSURE: _parse_blood_pressure,
    MeasurementType.BLOOD_GLUCOSE: _parse_blood_glucose,
    MeasurementType.HEART_RATE: _parse_heart_rate,
}


def latest_vitals(measurements: Iterable[Measurement], strict: bool = True) -> LatestVitals:
    """
    Parse the most recent reading of each type.

    Args:
        measurements: Unordered measurement list
        strict: Raise InvalidMeasurementError on malformed payloads. When False,
            a malformed reading is logged and treated as absent.

    Returns:
        LatestVitals with None for anything absent
    """
    values: Dict[str, Any] = {}
    for measurement_type, measurement in latest_by_type(measurements).items():
        try:
            values.update(_PARSERS[measurement_type](measurement.value))
        except InvalidMeasurementError as e:
            if strict:
                raise
            logger.warning(f"Ignoring malformed measurement: {e}")
    return LatestVitals(**values)


def classify_bmi(bmi: Optional[float]) -> str:
    """Chinese adult BMI category."""
    if bmi is None:
        return "unknown"
    if bmi < 18.5:
        return "underweight"
    if bmi < BMI_OVERWEIGHT:
        return "normal"
    if bmi < BMI_OBESE:
        return "overweight"
    return "obese"


def bp_stage(systolic: Optional[float], diastolic: Optional[float]) -> str:
    """
    Blood-pressure grade per the Chinese adult hypertension guideline.

    Returns one of: unknown, normal, high_normal, stage_1, stage_2, stage_3.
    """
    if systolic is None and diastolic is None:
        return "unknown"
    systolic = systolic or 0.0
    diastolic = diastolic or 0.0
    if systolic >= 180 or diastolic >= 110:
        return "stage_3"
    if systolic >= 160 or diastolic >= 100:
        return "stage_2"
    if systolic >= 140 or diastolic >= 90:
        return "stage_1"
    if systolic >= 130 or diastolic >= 85:
        return "high_normal"
    return "normal"


def has_central_obesity(sex: str, waist_cm: Optional[float]) -> bool:
    """Waist circumference at or above the sex-specific cut-off."""
    cutoff = WAIST_CUTOFFS.get(sex)
    if cutoff is None or waist_cm is None:
        return False
    return waist_cm >= cutoff
