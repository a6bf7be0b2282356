"""
Error taxonomy for the prescription core.

Engines convert these into conservative results instead of letting them
escape; they surface only at configuration and catalog-loading boundaries.
"""


class ExerciseRxError(ValueError):
    """Base class for all prescription-core errors."""


class ConfigurationError(ExerciseRxError):
    """Rejected fusion configuration (e.g. negative alpha)."""


class InvalidMeasurementError(ExerciseRxError):
    """A measurement payload is structurally malformed (non-numeric, NaN, ...)."""

    def __init__(self, measurement_type: str, detail: str):
        self.measurement_type = measurement_type
        self.detail = detail
        super().__init__(f"Invalid {measurement_type} measurement: {detail}")


class RuleCatalogError(ExerciseRxError):
    """The rule catalog file is missing or malformed."""
