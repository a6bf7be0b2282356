"""
Safety Gate API Routes

Endpoint for pre-exercise screening.
"""

from fastapi import APIRouter

from exercise_rx.api.models.requests import GateRequest
from exercise_rx.safety_gate import SafetyGate
from exercise_rx.schemas import GateResult

router = APIRouter()

_gate = SafetyGate()


@router.post("/gate", response_model=GateResult)
async def evaluate_gate(request: GateRequest) -> GateResult:
    """
    Screen a profile and its measurements before exercise.

    The gate never fails on bad readings: malformed data yields a red verdict
    with reason "Measurement data invalid".

    Args:
        request: GateRequest with profile and measurements

    Returns:
        GateResult with status, reasons and suggested action
    """
    return _gate.evaluate(request.profile, request.measurements)
