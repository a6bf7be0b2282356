"""
Weekly prescription adjustment from adherence history.

Every 7 days the most recent week of adherence logs is reviewed:
- Low completion (<60%) or high average RPE (>=7): scale freq/time by 0.85
  and cap intensity at low
- High completion (>=90%) with average RPE <=5: scale by 1.10, intensity unchanged
- Otherwise: 1.05 when completion >=80%, else 0.95

The adjustment carries multipliers, not absolute values; `apply_adjustment`
multiplies them into an existing prescription.
"""

import logging
from typing import Iterable, List, Optional

from exercise_rx.fusion import MIN_FREQ, MIN_TIME, round_half_up
from exercise_rx.schemas import (
    AdherenceLog,
    AdjustmentFit,
    Intensity,
    Prescription,
    WeeklyAdjustment,
)

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7

LOW_COMPLETION = 0.6
HIGH_RPE = 7.0
HIGH_COMPLETION = 0.9
COMFORTABLE_RPE = 5.0
STEADY_COMPLETION = 0.8

TAG_NO_HISTORY = "ADJ-000: no history, no adjustment"
TAG_DECREASE = "ADJ-101: low completion or high RPE, freq/time -15%"
TAG_INCREASE = "ADJ-102: high completion and low RPE, freq/time +10%"
TAG_FINE_TUNE = "ADJ-103: middle range, freq/time fine-tuned by 5%"


class AdjustmentEngine:
    """Derives a weekly multiplier from the adherence log."""

    def __init__(self, window_days: int = WINDOW_DAYS):
        self.window_days = window_days

    def recent_window(self, history: Iterable[AdherenceLog]) -> List[AdherenceLog]:
        """Most recent `window_days` logs, newest first."""
        logs = sorted(history or [], key=lambda log: log.date, reverse=True)
        return logs[: self.window_days]

    def adjust_weekly(self, history: Iterable[AdherenceLog]) -> WeeklyAdjustment:
        """
        Propose freq/time multipliers for the coming week.

        Args:
            history: Adherence logs in any order

        Returns:
            WeeklyAdjustment whose fit.freq/fit.time are multipliers
        """
        recent = self.recent_window(history)
        if not recent:
            logger.debug("No adherence history; leaving prescription unchanged")
            return WeeklyAdjustment(rule_tags=[TAG_NO_HISTORY])

        planned = sum(log.planned_minutes for log in recent)
        completed = sum(log.completed_minutes for log in recent)
        completion_rate = completed / planned if planned > 0 else 0.0

        rpe_values = [log.rpe for log in recent if log.rpe is not None]
        avg_rpe = sum(rpe_values) / len(rpe_values) if rpe_values else 0.0

        intensity: Optional[Intensity] = None
        if completion_rate < LOW_COMPLETION or avg_rpe >= HIGH_RPE:
            multiplier = 0.85
            intensity = Intensity.LOW
            tag = TAG_DECREASE
        elif completion_rate >= HIGH_COMPLETION and avg_rpe <= COMFORTABLE_RPE:
            multiplier = 1.10
            tag = TAG_INCREASE
        else:
            multiplier = 1.05 if completion_rate >= STEADY_COMPLETION else 0.95
            tag = TAG_FINE_TUNE

        multiplier = round(multiplier, 2)
        logger.info(
            f"Weekly adjustment: completion={completion_rate:.2f} avg_rpe={avg_rpe:.1f} "
            f"-> x{multiplier} ({tag.split(':')[0]})"
        )
        return WeeklyAdjustment(
            fit=AdjustmentFit(freq=multiplier, time=multiplier, intensity=intensity),
            rule_tags=[tag],
            completion_rate=completion_rate,
            avg_rpe=avg_rpe,
            window_days=len(recent),
        )


def adjust_weekly(history: Iterable[AdherenceLog]) -> WeeklyAdjustment:
    return AdjustmentEngine().adjust_weekly(history)


def apply_adjustment(prescription: Prescription, adjustment: WeeklyAdjustment) -> Prescription:
    """
    Multiply an adjustment into a copy of a prescription.

    A suggested intensity is applied only when it is lower than the current
    one; the adjustment never raises intensity.
    """
    fit = prescription.fit
    intensity = fit.intensity
    suggested = adjustment.fit.intensity
    if suggested is not None and suggested.ordinal < intensity.ordinal:
        intensity = suggested

    new_fit = fit.model_copy(
        update={
            "freq": max(MIN_FREQ, round_half_up(fit.freq * adjustment.fit.freq)),
            "time": max(MIN_TIME, round_half_up(fit.time * adjustment.fit.time)),
            "intensity": intensity,
        }
    )
    return prescription.model_copy(
        update={
            "fit": new_fit,
            "adjustment_tags": prescription.adjustment_tags
            + [tag for tag in adjustment.rule_tags if tag not in prescription.adjustment_tags],
        }
    )
