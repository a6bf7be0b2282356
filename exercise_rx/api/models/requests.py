"""
API Request Models

Pydantic models for API request validation.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from exercise_rx.schemas import AdherenceLog, Measurement, Prescription, UserProfile


class GateRequest(BaseModel):
    """Request model for pre-exercise screening."""

    profile: UserProfile = Field(..., description="User profile")
    measurements: List[Measurement] = Field(
        default_factory=list, description="Recent measurements in any order"
    )


class FusionConfigUpdate(BaseModel):
    """Partial fusion configuration; omitted fields keep their current value."""

    use_fusion: Optional[bool] = None
    alpha: Optional[float] = None
    beta: Optional[float] = None
    priority_factor_map: Optional[Dict[int, float]] = None
    kernel_init: Optional[float] = None


class PrescriptionRequest(BaseModel):
    """Request model for prescription generation."""

    profile: UserProfile = Field(..., description="User profile")
    measurements: List[Measurement] = Field(
        default_factory=list, description="Recent measurements in any order"
    )
    fusion: Optional[FusionConfigUpdate] = Field(
        None, description="Per-request overrides of the active fusion config"
    )


class AdjustmentRequest(BaseModel):
    """Request model for the weekly adjustment."""

    history: List[AdherenceLog] = Field(
        default_factory=list, description="Adherence logs in any order"
    )
    prescription: Optional[Prescription] = Field(
        None, description="If given, the adjustment is applied to this prescription"
    )


class NormalizeRequest(BaseModel):
    """Request model for condition normalization."""

    conditions: List[str] = Field(
        default_factory=list, description="Condition names in any supported wording"
    )
    text: Optional[str] = Field(None, description="Free-text medical history to scan")

