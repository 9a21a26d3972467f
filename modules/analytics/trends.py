"""
Trend Analysis Module for Fleet Level Analytics

Classifies the recent level change of a tank or generator as increasing,
decreasing or stable by comparing the first and last reading of a lookback
window.
"""

import logging
from typing import Iterable, Optional

from .records import EntityType, Reading, TrendDirection, TrendResult

logger = logging.getLogger(__name__)

DEFAULT_INCREASE_THRESHOLD = 5.0
DEFAULT_DECREASE_THRESHOLD = -5.0

INSUFFICIENT_TREND_MESSAGE = "Not enough data to analyse the trend"


def percent_change(previous: float, current: float) -> float:
    """Relative change from ``previous`` to ``current`` in percent, 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100.0


def classify_change(
    change_rate_percent: float,
    increase_threshold: float = DEFAULT_INCREASE_THRESHOLD,
    decrease_threshold: float = DEFAULT_DECREASE_THRESHOLD,
) -> TrendDirection:
    """Map a change rate to a direction; both thresholds are exclusive."""
    if change_rate_percent > increase_threshold:
        return TrendDirection.INCREASING
    if change_rate_percent < decrease_threshold:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


class TrendAnalyzer:
    """Classifies per-entity level trends with configurable thresholds."""

    def __init__(
        self,
        increase_threshold: float = DEFAULT_INCREASE_THRESHOLD,
        decrease_threshold: float = DEFAULT_DECREASE_THRESHOLD,
    ):
        """
        Initialize the trend analyzer.

        Args:
            increase_threshold: Change rate (percent) above which a trend is increasing
            decrease_threshold: Change rate (percent) below which a trend is decreasing
        """
        if decrease_threshold > increase_threshold:
            raise ValueError("decrease_threshold must not exceed increase_threshold")
        self.increase_threshold = increase_threshold
        self.decrease_threshold = decrease_threshold
        self.logger = logging.getLogger(__name__)

    def analyze(
        self,
        readings: Iterable[Reading],
        entity_id: Optional[str] = None,
        entity_type: Optional[EntityType] = None,
    ) -> TrendResult:
        """
        Classify the trend of a reading sequence.

        Args:
            readings: Readings inside the lookback window, any order
            entity_id: Entity the readings belong to (taken from the readings if omitted)
            entity_type: Type of that entity (taken from the readings if omitted)

        Returns:
            TrendResult; fewer than two readings yield a stable, zero-rate
            result flagged as insufficient data
        """
        ordered = sorted(readings, key=lambda r: r.timestamp)
        if entity_id is None and ordered:
            entity_id = ordered[0].entity_id
        if entity_type is None and ordered:
            entity_type = ordered[0].entity_type

        if len(ordered) < 2:
            self.logger.debug(f"Insufficient readings for trend of {entity_id}: {len(ordered)}")
            return TrendResult(
                entity_id=entity_id,
                direction=TrendDirection.STABLE,
                change_rate_percent=0.0,
                current_level=ordered[-1].level if ordered else None,
                previous_level=None,
                sample_count=len(ordered),
                insufficient_data=True,
                message=INSUFFICIENT_TREND_MESSAGE,
                entity_type=entity_type,
            )

        previous = ordered[0].level
        current = ordered[-1].level
        change_rate = percent_change(previous, current)

        return TrendResult(
            entity_id=entity_id,
            direction=classify_change(change_rate, self.increase_threshold, self.decrease_threshold),
            change_rate_percent=change_rate,
            current_level=current,
            previous_level=previous,
            sample_count=len(ordered),
            entity_type=entity_type,
        )


def analyze_trend(
    readings: Iterable[Reading],
    entity_id: Optional[str] = None,
    increase_threshold: float = DEFAULT_INCREASE_THRESHOLD,
    decrease_threshold: float = DEFAULT_DECREASE_THRESHOLD,
) -> TrendResult:
    """Classify the trend of a reading sequence."""
    analyzer = TrendAnalyzer(increase_threshold, decrease_threshold)
    return analyzer.analyze(readings, entity_id)
