"""
Prescription orchestration.

Builds a FITT prescription from a profile and its measurements:

1. Seed a baseline Fit from age, BMI and cardiovascular risk
2. Evaluate the rule catalog
3. Combine triggered rules (fusion, or legacy "last triggered rule wins")
4. Run the safety gate and, on red, force the prescription down

The fusion configuration is snapshotted once per call, so a concurrent config
swap never mixes two configurations inside one prescription.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from exercise_rx.config import FusionConfig, get_fusion_config
from exercise_rx.fusion import DEFAULT_EXERCISE_TYPE, FusionEngine
from exercise_rx.rules import RuleCatalog, default_catalog
from exercise_rx.safety_gate import CARDIAC_TAGS, SafetyGate
from exercise_rx.schemas import (
    Fit,
    GateResult,
    GateStatus,
    Intensity,
    Measurement,
    Prescription,
    RuleOutput,
    UserProfile,
)
from exercise_rx.vitals import bp_stage, latest_vitals

logger = logging.getLogger(__name__)

BASELINE_FREQ = 3
BASELINE_TIME = 30

CARDIOVASCULAR_TAGS = CARDIAC_TAGS | {"hypertension", "stroke"}
HYPERTENSIVE_STAGES = frozenset({"stage_1", "stage_2", "stage_3"})

# Red-gate override floors
RED_MIN_TIME = 20
RED_TIME_REDUCTION = 10


def has_cardiovascular_risk(profile: UserProfile, measurements: Iterable[Measurement]) -> bool:
    """Cardiovascular condition tag, or latest blood pressure >= 140/90."""
    if CARDIOVASCULAR_TAGS & set(profile.conditions):
        return True
    vitals = latest_vitals(measurements, strict=False)
    return bp_stage(vitals.systolic, vitals.diastolic) in HYPERTENSIVE_STAGES


def baseline_fit(profile: UserProfile, measurements: Iterable[Measurement]) -> Fit:
    """Seed prescription used when no rule applies."""
    bmi = profile.bmi
    if (bmi is not None and bmi >= 30) or profile.age >= 65 or has_cardiovascular_risk(
        profile, measurements
    ):
        intensity = Intensity.LOW
    elif (bmi is not None and bmi >= 25) or profile.age >= 50:
        intensity = Intensity.LOW_MID
    else:
        intensity = Intensity.MODERATE

    return Fit(
        freq=BASELINE_FREQ,
        intensity=intensity,
        time=BASELINE_TIME,
        exercise_type=DEFAULT_EXERCISE_TYPE,
    )


def legacy_fit(baseline: Fit, rule_outputs: List[RuleOutput]) -> Fit:
    """
    Apply rules in the given (priority-descending) order, each present field
    overwriting the previous value: the last triggered rule wins.
    """
    fit = baseline
    for output in rule_outputs:
        fit = output.fit.merged_over(fit)
    return fit


def apply_red_override(fit: Fit) -> Fit:
    """Reduce a prescription after a red gate verdict; exercise type is kept."""
    return fit.model_copy(
        update={
            "freq": max(1, fit.freq - 1),
            "intensity": Intensity.lowest(),
            "time": max(RED_MIN_TIME, fit.time - RED_TIME_REDUCTION),
        }
    )


class PrescriptionOrchestrator:
    """
    Generates prescriptions from the rule catalog, fusion engine and safety gate.

    Each collaborator may be injected; defaults are the packaged catalog, a
    stateless SafetyGate and the active fusion configuration.
    """

    def __init__(
        self,
        catalog: Optional[RuleCatalog] = None,
        gate: Optional[SafetyGate] = None,
        config: Optional[FusionConfig] = None,
    ):
        self.catalog = catalog if catalog is not None else default_catalog()
        self.gate = gate or SafetyGate()
        self.config = config

    def generate(
        self,
        profile: UserProfile,
        measurements: Optional[Iterable[Measurement]] = None,
    ) -> Prescription:
        """
        Generate a prescription.

        Args:
            profile: Normalized user profile
            measurements: Unordered measurements

        Returns:
            Prescription with the applied gate verdict attached
        """
        measurements = list(measurements or [])
        config = self.config or get_fusion_config()

        baseline = baseline_fit(profile, measurements)
        outputs = self.catalog.evaluate(profile, measurements)
        rule_ids = [o.id for o in outputs]

        explain = None
        if not outputs or config.alpha == 0:
            fit = baseline
            mode = "baseline"
        elif config.use_fusion:
            result = FusionEngine(config).fuse(outputs)
            fit = result.fused_fit
            explain = result.explain
            mode = "fusion"
        else:
            fit = legacy_fit(baseline, outputs)
            mode = "legacy"

        gate_result: GateResult = self.gate.evaluate(profile, measurements)
        if gate_result.status is GateStatus.RED:
            logger.info(f"Red gate for {profile.user_id or 'anonymous'}: {gate_result.reasons}")
            fit = apply_red_override(fit)

        display_ids = self.catalog.ensure_minimum_display_set(rule_ids, profile, measurements)

        prescription = Prescription(
            id=f"rx_{uuid.uuid4().hex[:12]}",
            fit=fit,
            baseline_fit=baseline,
            rule_ids=rule_ids,
            rule_ids_for_display=display_ids,
            explain=explain,
            fusion_mode=mode,
            gate=gate_result,
        )
        logger.debug(
            f"Prescription {prescription.id} ({mode}): {fit.freq}x/{fit.time}min "
            f"{fit.intensity.value}, rules={rule_ids}"
        )
        return prescription


def generate_prescription(
    profile: UserProfile,
    measurements: Optional[Iterable[Measurement]] = None,
    config: Optional[FusionConfig] = None,
) -> Prescription:
    """Generate a prescription with the packaged catalog."""
    return PrescriptionOrchestrator(config=config).generate(profile, measurements)
