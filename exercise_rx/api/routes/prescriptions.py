"""
Prescription API Routes

Endpoint for FITT prescription generation.
"""

from fastapi import APIRouter

from exercise_rx.api.models.requests import PrescriptionRequest
from exercise_rx.config import build_fusion_config, get_fusion_config
from exercise_rx.prescriber import PrescriptionOrchestrator
from exercise_rx.schemas import Prescription

router = APIRouter()


@router.post("/prescriptions", response_model=Prescription)
async def create_prescription(request: PrescriptionRequest) -> Prescription:
    """
    Generate an exercise prescription.

    Evaluates the rule catalog, combines triggered rules (fusion or legacy
    mode), then applies the safety gate. Per-request fusion overrides are
    merged over the active configuration without changing it.

    Args:
        request: PrescriptionRequest with profile, measurements and optional overrides

    Returns:
        Prescription including the gate verdict and display rule list

    Raises:
        ConfigurationError: If the overrides are invalid (mapped to 422)
    """
    config = get_fusion_config()
    if request.fusion is not None:
        overrides = request.fusion.model_dump(exclude_none=True)
        if overrides:
            config = build_fusion_config(**{**config.model_dump(), **overrides})

    orchestrator = PrescriptionOrchestrator(config=config)
    return orchestrator.generate(request.profile, request.measurements)
