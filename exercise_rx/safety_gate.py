"""
Pre-exercise safety gate.

This module implements the core safety mechanism of the prescription engine.
Screening runs in three short-circuiting stages:

1. PAR-Q approximation from age bands and condition flags
2. Vital-sign thresholds on the latest blood pressure, glucose and heart rate
3. Acute-symptom keywords in the free-text medical history

The verdict only ever escalates (green -> yellow -> red). The gate never
raises: malformed input produces a conservative red verdict.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from exercise_rx.conditions import extract_from_text
from exercise_rx.exceptions import InvalidMeasurementError
from exercise_rx.schemas import GateResult, GateStatus, Measurement, UserProfile
from exercise_rx.vitals import LatestVitals, latest_vitals

logger = logging.getLogger(__name__)


PARQ_REASON = "PAR-Q indicates high risk"
PARQ_ACTION = "Stop and consult a physician before resuming exercise"
STOP_ACTION = "Stop exercising; consult a physician or re-measure"
CAUTION_ACTION = (
    "Switch to low-intensity walking/stretching for 10-15 min and re-measure after exercise"
)
INVALID_DATA_REASON = "Measurement data invalid"

PARQ_RISK_THRESHOLD = 5

# Any of these answers "yes" to the PAR-Q heart-condition question
CARDIAC_TAGS = frozenset(
    {
        "heart_disease",
        "coronary_heart_disease",
        "heart_failure",
        "arrhythmia",
        "angina",
    }
)

# (low, high) normal bands
SYSTOLIC_BAND = (90.0, 180.0)
DIASTOLIC_BAND = (60.0, 110.0)
FASTING_GLUCOSE_BAND = (3.9, 11.1)
RANDOM_GLUCOSE_BAND = (3.9, 16.7)
HEART_RATE_BAND = (50.0, 100.0)

# (low, high) limits beyond which a band violation is red rather than yellow
SYSTOLIC_EXTREME = (80.0, 200.0)
DIASTOLIC_EXTREME = (50.0, 120.0)
GLUCOSE_EXTREME = (3.0, 20.0)
HEART_RATE_EXTREME = (40.0, 120.0)

# Blood-pressure exercise tiers (systolic, diastolic)
BP_STOP = (180.0, 110.0)
BP_CAUTION = (160.0, 100.0)

# keyword -> reason; red tier is checked before amber
RED_SYMPTOMS: List[Tuple[Tuple[str, ...], str]] = [
    (("chest pain", "chest tightness", "胸痛", "胸闷"), "Recent chest pain or tightness"),
    (("dyspnea", "dyspnoea", "shortness of breath", "呼吸困难"), "Recent dyspnea"),
    (("syncope", "fainting", "fainted", "晕厥"), "Recent syncope"),
]
AMBER_SYMPTOMS: List[Tuple[Tuple[str, ...], str]] = [
    (("palpitation", "心悸"), "Palpitations"),
    (("fatigue", "疲劳"), "Unusual fatigue"),
    (("edema", "oedema", "swelling", "水肿"), "Lower-limb edema"),
]


class ParqScreen(BaseModel):
    """Outcome of the PAR-Q stage."""

    score: int = Field(0, ge=0)
    high_risk: bool = False
    flags: List[str] = Field(default_factory=list)


def _outside(value: float, band: Tuple[float, float]) -> bool:
    low, high = band
    return value < low or value > high


class SafetyGate:
    """
    Three-stage pre-exercise screening.

    Stateless; one instance can serve concurrent callers.
    """

    def evaluate(
        self, profile: UserProfile, measurements: Optional[Iterable[Measurement]] = None
    ) -> GateResult:
        """
        Screen a profile and its measurements.

        Args:
            profile: Normalized user profile
            measurements: Unordered measurements; only the latest of each type is used

        Returns:
            Fully determined GateResult
        """
        try:
            result = self._evaluate(profile, list(measurements or []))
        except Exception:
            logger.exception("Safety gate failed unexpectedly; returning red")
            result = GateResult(
                status=GateStatus.RED,
                reasons=[INVALID_DATA_REASON],
                suggested_action=STOP_ACTION,
            )

        logger.debug(f"Gate verdict {result.status.value}: {result.reasons}")
        return result

    def _evaluate(self, profile: UserProfile, measurements: List[Measurement]) -> GateResult:
        # Stage 1: PAR-Q
        parq = self.screen_parq(profile)
        if parq.high_risk:
            return GateResult(
                status=GateStatus.RED,
                reasons=[PARQ_REASON],
                suggested_action=PARQ_ACTION,
            )

        status = GateStatus.GREEN
        reasons: List[str] = []
        action: Optional[str] = None

        # Stage 2: vital thresholds
        try:
            vitals = latest_vitals(measurements, strict=True)
        except InvalidMeasurementError as e:
            logger.warning(f"Rejecting malformed measurement at gate: {e}")
            return GateResult(
                status=GateStatus.RED,
                reasons=[INVALID_DATA_REASON],
                suggested_action=STOP_ACTION,
            )

        vital_status, vital_reasons = self.screen_vitals(vitals)
        status = status.escalate(vital_status)
        reasons.extend(vital_reasons)
        if status is GateStatus.RED:
            return GateResult(status=status, reasons=reasons, suggested_action=STOP_ACTION)
        if status is GateStatus.YELLOW:
            action = CAUTION_ACTION

        # Stage 3: acute symptoms
        symptom_status, symptom_reasons = self.screen_symptoms(profile.medical_history)
        if symptom_status is GateStatus.RED:
            return GateResult(
                status=GateStatus.RED,
                reasons=reasons + symptom_reasons,
                suggested_action=STOP_ACTION,
            )
        if symptom_status is GateStatus.YELLOW and status is GateStatus.GREEN:
            status = GateStatus.YELLOW
            reasons.extend(symptom_reasons)
            action = CAUTION_ACTION

        return GateResult(status=status, reasons=reasons, suggested_action=action)

    def screen_parq(self, profile: UserProfile) -> ParqScreen:
        """
        Approximate the PAR-Q questionnaire.

        Scoring: age >= 75 +2, 65-74 +1; any cardiac condition (heart
        disease, CHD, heart failure, arrhythmia, angina) +3 and immediate
        high risk; hypertension +2; diabetes +2. High risk at score >= 5.
        """
        score = 0
        high_risk = False

        if profile.age >= 75:
            score += 2
        elif profile.age >= 65:
            score += 1

        flags: Set[str] = set(profile.conditions) | extract_from_text(profile.medical_history)
        if flags & CARDIAC_TAGS:
            score += 3
            high_risk = True
        if "hypertension" in flags:
            score += 2
        if "diabetes" in flags:
            score += 2

        if score >= PARQ_RISK_THRESHOLD:
            high_risk = True

        return ParqScreen(score=score, high_risk=high_risk, flags=sorted(flags))

    def screen_vitals(self, vitals: LatestVitals) -> Tuple[GateStatus, List[str]]:
        """Check the latest readings against exercise thresholds and normal bands."""
        status = GateStatus.GREEN
        reasons: List[str] = []

        systolic, diastolic = vitals.systolic, vitals.diastolic
        if vitals.has_blood_pressure:
            sbp = systolic if systolic is not None else 0.0
            dbp = diastolic if diastolic is not None else 0.0
            if sbp >= BP_STOP[0] or dbp >= BP_STOP[1]:
                status = status.escalate(GateStatus.RED)
                reasons.append("Blood pressure >= 180/110 mmHg: postpone exercise")
            elif sbp >= BP_CAUTION[0] or dbp >= BP_CAUTION[1]:
                status = status.escalate(GateStatus.YELLOW)
                reasons.append(
                    "Blood pressure >= 160/100 mmHg: low-to-moderate intensity only, shorter sessions"
                )

        if systolic is not None and _outside(systolic, SYSTOLIC_BAND):
            reasons.append(f"Systolic blood pressure abnormal: {systolic:g} mmHg")
            status = status.escalate(
                GateStatus.RED if _outside(systolic, SYSTOLIC_EXTREME) else GateStatus.YELLOW
            )

        if diastolic is not None and _outside(diastolic, DIASTOLIC_BAND):
            reasons.append(f"Diastolic blood pressure abnormal: {diastolic:g} mmHg")
            status = status.escalate(
                GateStatus.RED if _outside(diastolic, DIASTOLIC_EXTREME) else GateStatus.YELLOW
            )

        if vitals.glucose is not None:
            band = FASTING_GLUCOSE_BAND if vitals.glucose_fasting else RANDOM_GLUCOSE_BAND
            if _outside(vitals.glucose, band):
                kind = "fasting" if vitals.glucose_fasting else "random"
                reasons.append(f"Blood glucose abnormal: {vitals.glucose:g} mmol/L ({kind})")
                status = status.escalate(
                    GateStatus.RED
                    if _outside(vitals.glucose, GLUCOSE_EXTREME)
                    else GateStatus.YELLOW
                )

        if vitals.heart_rate is not None and _outside(vitals.heart_rate, HEART_RATE_BAND):
            reasons.append(f"Heart rate abnormal: {vitals.heart_rate:g} bpm")
            status = status.escalate(
                GateStatus.RED
                if _outside(vitals.heart_rate, HEART_RATE_EXTREME)
                else GateStatus.YELLOW
            )

        return status, reasons

    def screen_symptoms(self, history: Optional[str]) -> Tuple[GateStatus, List[str]]:
        """Keyword scan of the medical history for acute symptoms."""
        if not history:
            return GateStatus.GREEN, []

        text = history.lower()
        red = [reason for keywords, reason in RED_SYMPTOMS if any(k in text for k in keywords)]
        if red:
            return GateStatus.RED, red

        amber = [reason for keywords, reason in AMBER_SYMPTOMS if any(k in text for k in keywords)]
        if amber:
            return GateStatus.YELLOW, amber

        return GateStatus.GREEN, []


_default_gate = SafetyGate()


def pre_exercise_gate(
    profile: UserProfile, measurements: Optional[Iterable[Measurement]] = None
) -> GateResult:
    """Run the default safety gate."""
    return _default_gate.evaluate(profile, measurements)
