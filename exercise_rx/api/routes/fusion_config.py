"""
Fusion Configuration API Routes

Endpoints for reading and replacing the active fusion configuration.
"""

from fastapi import APIRouter

from exercise_rx.api.models.requests import FusionConfigUpdate
from exercise_rx.config import FusionConfig, get_fusion_config, update_fusion_config

router = APIRouter()


@router.get("/config/fusion", response_model=FusionConfig)
async def read_fusion_config() -> FusionConfig:
    """Return the active fusion configuration."""
    return get_fusion_config()


@router.put("/config/fusion", response_model=FusionConfig)
async def replace_fusion_config(update: FusionConfigUpdate) -> FusionConfig:
    """
    Swap in a new fusion configuration.

    Omitted fields keep their current values. The whole configuration is
    validated before it replaces the active one, so a rejected update leaves
    the previous configuration in place.

    Raises:
        ConfigurationError: If any value is rejected (mapped to 422)
    """
    return update_fusion_config(**update.model_dump(exclude_none=True))
