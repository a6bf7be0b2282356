"""
Pydantic models for the exercise prescription core.

This module defines the core data structures for:
- User Profiles: demographics, body measures and canonical chronic-condition tags
- Measurements: blood pressure, blood glucose and heart-rate readings
- Gate Results: the tri-state pre-exercise safety verdict
- FITT prescriptions: rule outputs, fusion results and final prescriptions
- Adherence Logs: daily exercise completion records and weekly adjustments
"""

import datetime as dt
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from exercise_rx.conditions import normalize


# ============================================================================
# Enumerations
# ============================================================================

class Sex(str, Enum):
    """Self-reported sex."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class MeasurementType(str, Enum):
    """Kind of vital sign reading."""
    BLOOD_PRESSURE = "bp"
    BLOOD_GLUCOSE = "bg"
    HEART_RATE = "hr"


class MeasurementSource(str, Enum):
    """Where a reading came from."""
    CLINICAL = "clinical"
    WEARABLE = "wearable"
    MANUAL = "manual"


class GateStatus(str, Enum):
    """Traffic-light verdict of the pre-exercise safety gate."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @property
    def severity(self) -> int:
        return _GATE_SEVERITY[self]

    def escalate(self, other: "GateStatus") -> "GateStatus":
        """Return the more severe of two statuses (never downgrades)."""
        return other if other.severity > self.severity else self


_GATE_SEVERITY = {GateStatus.GREEN: 0, GateStatus.YELLOW: 1, GateStatus.RED: 2}


class Intensity(str, Enum):
    """Exercise intensity tiers, lowest first."""
    VERY_LOW = "very_low"
    LOW = "low"
    LOW_MID = "low_mid"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def ordinal(self) -> float:
        return INTENSITY_ORDINALS[self]

    @classmethod
    def lowest(cls) -> "Intensity":
        return cls.VERY_LOW


INTENSITY_ORDINALS: Dict[Intensity, float] = {
    Intensity.VERY_LOW: 0.5,
    Intensity.LOW: 1.0,
    Intensity.LOW_MID: 1.5,
    Intensity.MODERATE: 2.0,
    Intensity.HIGH: 3.0,
}


# ============================================================================
# Inputs
# ============================================================================


class UserProfile(BaseModel):
    """
    Health profile supplied by the profile/store collaborator.

    Conditions are always canonical tags: anything passed in is run through
    the condition normalizer, so free text never reaches the rule engine.
    """

    user_id: Optional[str] = Field(None, description="Opaque identifier from the profile store")
    age: int = Field(..., ge=0, le=120, description="Age in years")
    sex: Sex = Field(default=Sex.OTHER, description="Self-reported sex")
    height_cm: Optional[float] = Field(None, gt=0, le=272, description="Height in cm")
    weight_kg: Optional[float] = Field(None, gt=0, le=650, description="Weight in kg")
    waist_cm: Optional[float] = Field(None, gt=0, le=300, description="Waist circumference in cm")
    conditions: Set[str] = Field(
        default_factory=set,
        description="Canonical chronic-condition tags (e.g. 'hypertension', 'diabetes')",
    )
    medical_history: Optional[str] = Field(
        None,
        description="Free-text medical history, scanned for acute symptoms",
    )

    @field_validator("conditions", mode="before")
    @classmethod
    def normalize_conditions(cls, v: Any) -> Set[str]:
        """Map localized or free-text condition names to canonical tags."""
        if v is None:
            return set()
        if isinstance(v, str):
            v = [v]
        return normalize(list(v))

    @property
    def bmi(self) -> Optional[float]:
        """Body-mass index, or None when height or weight is unknown."""
        if not self.height_cm or not self.weight_kg:
            return None
        height_m = self.height_cm / 100
        return self.weight_kg / (height_m * height_m)


class Measurement(BaseModel):
    """
    A single vital-sign reading.

    `value` is intentionally loose: a malformed reading must reach the safety
    gate (which reports it conservatively) instead of failing at construction.
    Expected shapes are {systolic, diastolic} for bp, {value, is_fasting} or a
    bare number for bg, and a number for hr.
    """

    type: MeasurementType = Field(..., description="Reading kind (bp, bg, hr)")
    value: Any = Field(..., description="Reading payload; shape depends on type")
    taken_at: Optional[datetime] = Field(
        None, description="When the reading was taken; readings without one are ignored"
    )
    source: MeasurementSource = Field(
        default=MeasurementSource.MANUAL, description="Origin of the reading"
    )

    @field_validator("taken_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat naive timestamps as UTC so readings stay comparable."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AdherenceLog(BaseModel):
    """One day of exercise logging."""

    date: dt.date = Field(..., description="Calendar day of the log")
    planned_minutes: float = Field(0, ge=0, description="Minutes planned for the day")
    completed_minutes: float = Field(0, ge=0, description="Minutes actually completed")
    rpe: Optional[float] = Field(
        None, ge=1, le=10, description="Rating of perceived exertion (1-10)"
    )
    symptoms: List[str] = Field(default_factory=list, description="Reported symptoms")


# ============================================================================
# Safety gate output
# ============================================================================


class GateResult(BaseModel):
    """Immutable pre-exercise safety verdict."""

    model_config = ConfigDict(frozen=True)

    status: GateStatus = Field(..., description="green, yellow or red")
    reasons: List[str] = Field(default_factory=list, description="Ordered reasons")
    suggested_action: Optional[str] = Field(
        None, description="Single most severe recommended action"
    )


# ============================================================================
# FITT prescription components
# ============================================================================


class Fit(BaseModel):
    """Frequency, Intensity, Time and Type of a prescription."""

    freq: int = Field(..., ge=1, description="Sessions per week")
    intensity: Intensity = Field(..., description="Intensity tier")
    time: int = Field(..., ge=1, description="Minutes per session")
    exercise_type: str = Field(..., min_length=1, description="Exercise modality")


class PartialFit(BaseModel):
    """A FITT fragment produced by a rule; any field may be absent."""

    freq: Optional[int] = Field(None, ge=1)
    intensity: Optional[Intensity] = None
    time: Optional[int] = Field(None, ge=1)
    exercise_type: Optional[str] = None

    def merged_over(self, base: Fit) -> Fit:
        """Overlay the fields present here onto a full Fit."""
        updates = self.model_dump(exclude_none=True)
        return base.model_copy(update=updates)


class RuleOutput(BaseModel):
    """Per-rule contribution consumed by the fusion engine."""

    id: str = Field(..., description="Rule identifier")
    priority: int = Field(..., ge=1, le=10, description="Rule priority (1-10)")
    confidence: float = Field(1.0, ge=0.0, description="Confidence multiplier")
    fit: PartialFit = Field(default_factory=PartialFit, description="Rule's FITT output")


class RuleScore(BaseModel):
    """Per-rule total contribution (pre-normalization)."""

    id: str
    score: float


class FusionExplain(BaseModel):
    """Audit information for a fused prescription."""

    top: List[RuleScore] = Field(default_factory=list, description="Top contributing rules")
    alpha: float
    beta: float


class FusionResult(BaseModel):
    """Output of the fusion engine."""

    fused_fit: Fit
    explain: FusionExplain
    raw_contributions: List[RuleScore] = Field(default_factory=list)


class Prescription(BaseModel):
    """Final exercise prescription handed to UI/reporting collaborators."""

    id: str = Field(..., description="Prescription identifier")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation time (UTC)",
    )
    fit: Fit = Field(..., description="Prescribed FITT")
    baseline_fit: Optional[Fit] = Field(
        None, description="Seed FITT before any rule was applied"
    )
    rule_ids: List[str] = Field(default_factory=list, description="All triggered rules")
    rule_ids_for_display: List[str] = Field(
        default_factory=list,
        description="Fixed-size rule list for display; may include non-triggered padding",
    )
    adjustment_tags: List[str] = Field(
        default_factory=list,
        description="Weekly adjustment branches applied (not catalog rule ids)",
    )
    explain: Optional[FusionExplain] = Field(None, description="Fusion audit data")
    fusion_mode: Literal["fusion", "legacy", "baseline"] = Field(
        "baseline", description="How the rule outputs were combined"
    )
    gate: Optional[GateResult] = Field(None, description="Safety verdict applied")


# ============================================================================
# Weekly adjustment
# ============================================================================


class AdjustmentFit(BaseModel):
    """
    Multipliers for an existing prescription.

    freq and time are ratios (1.1 means +10%); callers multiply them into the
    current prescription rather than replacing it.
    """

    freq: float = Field(1.0, gt=0)
    time: float = Field(1.0, gt=0)
    intensity: Optional[Intensity] = Field(
        None, description="Suggested ceiling; only ever lowers intensity"
    )


class WeeklyAdjustment(BaseModel):
    """Result of the weekly adherence review."""

    fit: AdjustmentFit = Field(default_factory=AdjustmentFit)
    rule_tags: List[str] = Field(default_factory=list, description="Which branch fired")
    completion_rate: float = Field(0.0, ge=0.0)
    avg_rpe: float = Field(0.0, ge=0.0)
    window_days: int = Field(0, ge=0, description="Number of logs considered")

    @property
    def multiplier(self) -> float:
        return self.fit.freq
