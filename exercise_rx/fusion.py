"""
Priority-weighted, kernel-smoothed fusion of triggered rule outputs.

For n triggered rules with weights w_i = alpha * factor(priority_i) * confidence_i
and an n x n kernel K (diagonal 1, off-diagonal kernel_init), each attribute
vector v (freq, time, intensity ordinal) is fused as

    fused_i = w_i * v_i + beta * sum_j K[i][j] * v_j
    total   = sum_i fused_i / (sum_i w_i + beta * n)

With a single rule the beta self-term still applies (damping toward itself).
Sums use math.fsum, so the result does not depend on input order.
"""

import logging
import math
from typing import List, Optional, Sequence

from exercise_rx.config import FusionConfig, get_fusion_config
from exercise_rx.schemas import (
    Fit,
    FusionExplain,
    FusionResult,
    Intensity,
    RuleOutput,
    RuleScore,
)

logger = logging.getLogger(__name__)

DEFAULT_EXERCISE_TYPE = "brisk walking"
MIN_FREQ = 1
MIN_TIME = 10
TOP_CONTRIBUTORS = 3
_EPSILON = 1e-6


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def intensity_from_ordinal(value: float) -> Intensity:
    """Map a fused intensity ordinal back to a tier."""
    if value <= 1.25:
        return Intensity.LOW
    if value <= 1.75:
        return Intensity.LOW_MID
    if value <= 2.5:
        return Intensity.MODERATE
    return Intensity.HIGH


def build_kernel(n: int, init: float = 0.0) -> List[List[float]]:
    """Symmetric n x n coupling matrix with unit diagonal."""
    kernel = [[init] * n for _ in range(n)]
    for i in range(n):
        kernel[i][i] = 1.0
    return kernel


class FusionEngine:
    """Combines the FITT outputs of all triggered rules into one Fit."""

    def __init__(self, config: Optional[FusionConfig] = None):
        self.config = config or get_fusion_config()

    def weights(self, rule_outputs: Sequence[RuleOutput]) -> List[float]:
        alpha = self.config.alpha
        return [
            alpha * self.config.priority_factor(r.priority) * r.confidence
            for r in rule_outputs
        ]

    def fuse(self, rule_outputs: Sequence[RuleOutput]) -> FusionResult:
        """
        Fuse triggered rule outputs.

        Args:
            rule_outputs: At least one RuleOutput

        Returns:
            FusionResult with the fused Fit, explanation and per-rule scores

        Raises:
            ValueError: If rule_outputs is empty (callers fall back to a baseline)
        """
        outputs = list(rule_outputs)
        n = len(outputs)
        if n == 0:
            raise ValueError("Cannot fuse an empty list of rule outputs")

        beta = self.config.beta
        kernel = build_kernel(n, self.config.kernel_init)
        weights = self.weights(outputs)

        freq_vec = [float(r.fit.freq or 0) for r in outputs]
        time_vec = [float(r.fit.time or 0) for r in outputs]
        intensity_vec = [r.fit.intensity.ordinal if r.fit.intensity else 0.0 for r in outputs]

        def fuse_vector(vec: List[float]) -> List[float]:
            return [
                weights[i] * vec[i]
                + beta * math.fsum(kernel[i][j] * vec[j] for j in range(n))
                for i in range(n)
            ]

        freq_fused = fuse_vector(freq_vec)
        time_fused = fuse_vector(time_vec)
        intensity_fused = fuse_vector(intensity_vec)

        contributions = [
            RuleScore(id=r.id, score=freq_fused[i] + time_fused[i] + intensity_fused[i])
            for i, r in enumerate(outputs)
        ]

        # Highest score wins; ties resolved by priority then id so order never matters
        exercise_type = DEFAULT_EXERCISE_TYPE
        typed = [
            (c, r) for c, r in zip(contributions, outputs) if r.fit.exercise_type
        ]
        if typed:
            _, best = min(typed, key=lambda cr: (-cr[0].score, -cr[1].priority, cr[1].id))
            exercise_type = best.fit.exercise_type

        normalizer = max(_EPSILON, math.fsum(weights) + beta * n)
        fused_fit = Fit(
            freq=max(MIN_FREQ, round_half_up(math.fsum(freq_fused) / normalizer)),
            time=max(MIN_TIME, round_half_up(math.fsum(time_fused) / normalizer)),
            intensity=intensity_from_ordinal(math.fsum(intensity_fused) / normalizer),
            exercise_type=exercise_type,
        )

        top = sorted(contributions, key=lambda c: (-c.score, c.id))[:TOP_CONTRIBUTORS]

        logger.debug(
            f"Fused {n} rules -> {fused_fit.freq}x/{fused_fit.time}min "
            f"{fused_fit.intensity.value} ({fused_fit.exercise_type})"
        )
        return FusionResult(
            fused_fit=fused_fit,
            explain=FusionExplain(top=top, alpha=self.config.alpha, beta=beta),
            raw_contributions=contributions,
        )


def fuse(
    rule_outputs: Sequence[RuleOutput], config: Optional[FusionConfig] = None
) -> FusionResult:
    """Fuse with an explicit config, or the active one."""
    return FusionEngine(config).fuse(rule_outputs)
