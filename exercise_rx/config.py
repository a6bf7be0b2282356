"""
Configuration for the prescription core.

Process settings come from the environment (prefix EXERCISE_RX_) via
pydantic-settings. The fusion configuration is the only shared mutable state:
it lives in a FusionConfigStore that swaps whole, validated, frozen
FusionConfig objects, so a reader never sees a half-applied update.
"""

import logging
import threading
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from exercise_rx.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EXERCISE_RX_", env_file=".env", extra="ignore")

    fusion_enabled: bool = True
    fusion_alpha: float = 1.0
    fusion_beta: float = 0.1
    fusion_kernel_init: float = 0.0

    log_level: str = "INFO"
    rule_catalog_path: Optional[Path] = None  # None -> packaged catalog


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the CLI and the HTTP adapter."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


class FusionConfig(BaseModel):
    """
    Settings for combining triggered rules into one prescription.

    Instances are frozen; change the active configuration by replacing it
    through the store accessors below.
    """

    model_config = ConfigDict(frozen=True)

    use_fusion: bool = Field(
        True, description="False selects legacy 'last triggered rule wins' mode"
    )
    alpha: float = Field(1.0, ge=0.0, description="Global weight scale")
    beta: float = Field(0.1, ge=0.0, description="Cross-rule smoothing weight")
    priority_factor_map: Mapping[int, float] = Field(
        default_factory=lambda: MappingProxyType({}),
        description="Explicit priority -> weight overrides (default max(0.1, p/10))",
    )
    kernel_init: float = Field(
        0.0, ge=0.0, le=1.0, description="Off-diagonal kernel coupling"
    )

    @field_validator("priority_factor_map")
    @classmethod
    def validate_priority_factors(cls, v: Mapping[int, float]) -> Mapping[int, float]:
        """Priorities are 1-10 and factors must be non-negative; the map is read-only."""
        for priority, factor in v.items():
            if not 1 <= priority <= 10:
                raise ValueError(f"Priority {priority} outside 1-10")
            if factor < 0:
                raise ValueError(f"Priority factor for {priority} must be >= 0, got {factor}")
        return MappingProxyType(dict(v))

    @field_serializer("priority_factor_map")
    def serialize_priority_factors(self, v: Mapping[int, float]) -> Dict[int, float]:
        return dict(v)

    def priority_factor(self, priority: int) -> float:
        if priority in self.priority_factor_map:
            return float(self.priority_factor_map[priority])
        return max(0.1, priority / 10)


def build_fusion_config(**values: Any) -> FusionConfig:
    """
    Validate and build a FusionConfig.

    Raises:
        ConfigurationError: If any value is rejected
    """
    try:
        return FusionConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid fusion configuration: {e}") from e


def fusion_config_from_settings(settings: Optional[Settings] = None) -> FusionConfig:
    settings = settings or get_settings()
    return build_fusion_config(
        use_fusion=settings.fusion_enabled,
        alpha=settings.fusion_alpha,
        beta=settings.fusion_beta,
        kernel_init=settings.fusion_kernel_init,
    )


class FusionConfigStore:
    """Single-writer, multi-reader holder for the active FusionConfig."""

    def __init__(self, initial: Optional[FusionConfig] = None):
        self._lock = threading.Lock()
        self._config = initial

    def get(self) -> FusionConfig:
        config = self._config
        if config is None:
            with self._lock:
                if self._config is None:
                    self._config = fusion_config_from_settings()
                config = self._config
        return config

    def replace(self, config: FusionConfig) -> FusionConfig:
        if not isinstance(config, FusionConfig):
            raise ConfigurationError(
                f"Expected FusionConfig, got {type(config).__name__}"
            )
        with self._lock:
            previous, self._config = self._config, config
        logger.info(f"Fusion config replaced: {previous} -> {config}")
        return config

    def update(self, **changes: Any) -> FusionConfig:
        """Build a new config from the current one plus `changes` and swap it in."""
        with self._lock:
            current = self._config or fusion_config_from_settings()
            config = build_fusion_config(**{**current.model_dump(), **changes})
            self._config = config
        logger.info(f"Fusion config updated: {changes}")
        return config

    def reset(self) -> FusionConfig:
        with self._lock:
            self._config = fusion_config_from_settings()
            return self._config


_store = FusionConfigStore()


def get_fusion_config() -> FusionConfig:
    return _store.get()


def set_fusion_config(config: FusionConfig) -> FusionConfig:
    return _store.replace(config)


def update_fusion_config(**changes: Any) -> FusionConfig:
    return _store.update(**changes)


def reset_fusion_config() -> FusionConfig:
    return _store.reset()
