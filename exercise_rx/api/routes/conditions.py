"""
Condition API Routes

Endpoint for mapping condition names to canonical tags.
"""

from fastapi import APIRouter

from exercise_rx.api.models.requests import NormalizeRequest
from exercise_rx.api.models.responses import NormalizeResponse
from exercise_rx.conditions import display_label, extract_from_text, normalize

router = APIRouter()


@router.post("/conditions/normalize", response_model=NormalizeResponse)
async def normalize_conditions(request: NormalizeRequest) -> NormalizeResponse:
    """Normalize condition names (and optionally free text); unknown names are dropped."""
    tags = normalize(request.conditions) | extract_from_text(request.text)
    ordered = sorted(tags)
    return NormalizeResponse(
        conditions=ordered,
        labels={tag: display_label(tag) for tag in ordered},
    )
