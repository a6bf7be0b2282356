"""
Adjustment API Routes

Endpoint for the weekly adherence review.
"""

from fastapi import APIRouter

from exercise_rx.adjustment import AdjustmentEngine, apply_adjustment
from exercise_rx.api.models.requests import AdjustmentRequest
from exercise_rx.api.models.responses import AdjustmentResponse

router = APIRouter()


@router.post("/adjustments", response_model=AdjustmentResponse)
async def create_adjustment(request: AdjustmentRequest) -> AdjustmentResponse:
    """
    Propose next week's multipliers from the last 7 adherence logs.

    An empty history returns multiplier 1.0 with a "no history" tag. When a
    prescription is supplied, the adjusted copy is returned as well.
    """
    adjustment = AdjustmentEngine().adjust_weekly(request.history)

    adjusted = None
    if request.prescription is not None:
        adjusted = apply_adjustment(request.prescription, adjustment)

    return AdjustmentResponse(adjustment=adjustment, prescription=adjusted)
