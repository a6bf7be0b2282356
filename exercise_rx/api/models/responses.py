"""
API Response Models

Pydantic models for API responses.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from exercise_rx.rules import PrescriptionRule
from exercise_rx.schemas import Prescription, WeeklyAdjustment


class RuleInfo(BaseModel):
    """Brief rule information for listing."""

    id: str = Field(..., description="Rule ID")
    name: str = Field(..., description="Human-readable name")
    priority: int = Field(..., description="Rule priority (1-10)")
    evidence_source: str = Field(..., description="Guideline the rule is drawn from")
    category: Optional[str] = Field(None, description="Rule grouping")


class RulesListResponse(BaseModel):
    """Response for GET /api/rules."""

    version: str = Field(..., description="Catalog version")
    rules: List[RuleInfo] = Field(..., description="Rules in declaration order")
    count: int = Field(..., description="Total number of rules")


class RuleDetailResponse(BaseModel):
    """Response for GET /api/rules/{rule_id}."""

    rule: PrescriptionRule


class AdjustmentResponse(BaseModel):
    """Response for POST /api/adjustments."""

    adjustment: WeeklyAdjustment = Field(..., description="Proposed weekly multipliers")
    prescription: Optional[Prescription] = Field(
        None, description="Adjusted prescription, when one was supplied"
    )


class NormalizeResponse(BaseModel):
    """Response for POST /api/conditions/normalize."""

    conditions: List[str] = Field(..., description="Sorted canonical tags")
    labels: Dict[str, str] = Field(..., description="Canonical tag -> display label")
