"""
Fleet KPI Summarizer for Fleet Level Analytics

Rolls per-entity trends and predictions up into fleet-wide figures:
- Average level, mean trend and efficiency per tank kind
- Generator performance and hours remaining
- Critical / low counts against the alert thresholds
- Alert volume average and day-over-day trend
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from utils.config import AnalyticsThresholds

from .alerts import AlertSeverity, classify_level
from .records import (
    AlertKPI,
    EntityInfo,
    EntityType,
    FleetKPISummary,
    GeneratorFleetKPI,
    PredictionResult,
    TankFleetKPI,
    TankKind,
    TrendResult,
)
from .trends import (
    DEFAULT_DECREASE_THRESHOLD,
    DEFAULT_INCREASE_THRESHOLD,
    classify_change,
    percent_change,
)

logger = logging.getLogger(__name__)

DEFAULT_TIME_RANGE_HOURS = 168


def _mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0


def _clamp_percent(value: float) -> float:
    return min(max(value, 0.0), 100.0)


ResultKey = Tuple[Optional[EntityType], str]


def index_results(results: Iterable[Union[TrendResult, PredictionResult]]) -> Dict[ResultKey, object]:
    """Index results by (entity type, entity id); ids are only unique within a type."""
    return {(r.entity_type, r.entity_id): r for r in results}


def _lookup(index: Dict[ResultKey, object], entity: EntityInfo):
    found = index.get((entity.entity_type, entity.entity_id))
    if found is None:
        # results built without a type still match by id
        found = index.get((None, entity.entity_id))
    return found


class FleetSummarizer:
    """Builds fleet KPI summaries from per-entity analytics."""

    def __init__(
        self,
        thresholds: AnalyticsThresholds,
        increase_threshold: float = DEFAULT_INCREASE_THRESHOLD,
        decrease_threshold: float = DEFAULT_DECREASE_THRESHOLD,
    ):
        """
        Initialize the summarizer.

        Args:
            thresholds: Low / critical level thresholds for the risk counts
            increase_threshold: Trend threshold used to classify the fleet trend
            decrease_threshold: Trend threshold used to classify the fleet trend
        """
        self.thresholds = thresholds
        self.increase_threshold = increase_threshold
        self.decrease_threshold = decrease_threshold
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _current_level(entity: EntityInfo, trend: Optional[TrendResult]) -> Optional[float]:
        if entity.current_level is not None:
            return entity.current_level
        if trend is not None:
            return trend.current_level
        return None

    def _risk_counts(self, levels: Iterable[float]) -> Dict[AlertSeverity, int]:
        counts = {AlertSeverity.CRITICAL: 0, AlertSeverity.LOW: 0}
        for level in levels:
            severity = classify_level(level, self.thresholds)
            if severity is not None:
                counts[severity] += 1
        return counts

    @staticmethod
    def _horizons(group: Sequence[EntityInfo], predictions: Dict[ResultKey, object]) -> List[float]:
        found = (_lookup(predictions, e) for e in group)
        return [p.predicted_remaining for p in found if p is not None and p.predicted_remaining is not None]

    @staticmethod
    def _efficiency(
        entities: Sequence[EntityInfo],
        predictions: Dict[ResultKey, object],
    ) -> float:
        """Average consumption in liters per unit as a percentage of group capacity."""
        total_capacity = sum(e.capacity for e in entities)
        consumption = []
        for entity in entities:
            prediction = _lookup(predictions, entity)
            if prediction is not None:
                consumption.append(prediction.consumption_rate_per_unit * entity.capacity / 100.0)
        if total_capacity <= 0 or not consumption:
            return 0.0
        return _mean(consumption) / total_capacity * 100.0

    def summarize_tanks(
        self,
        kind: TankKind,
        entities: Sequence[EntityInfo],
        trends: Iterable[TrendResult],
        predictions: Iterable[PredictionResult],
    ) -> TankFleetKPI:
        """Summarize all tanks of one kind."""
        trends = index_results(trends)
        predictions = index_results(predictions)
        group = [e for e in entities if e.entity_type is EntityType.TANK and e.group == kind.value]
        group_trends = [_lookup(trends, e) for e in group]

        levels = [
            level for level in (self._current_level(e, t) for e, t in zip(group, group_trends))
            if level is not None
        ]
        rates = [t.change_rate_percent for t in group_trends if t is not None and not t.insufficient_data]
        fleet_trend = _mean(rates)

        horizons = self._horizons(group, predictions)
        efficiency_raw = self._efficiency(group, predictions)
        risk = self._risk_counts(levels)

        return TankFleetKPI(
            average=_mean(levels),
            trend=fleet_trend,
            direction=classify_change(fleet_trend, self.increase_threshold, self.decrease_threshold),
            efficiency=_clamp_percent(efficiency_raw),
            efficiency_raw=efficiency_raw,
            days_remaining=_mean(horizons),
            total_capacity=float(sum(e.capacity for e in group)),
            entity_count=len(group),
            critical_count=risk[AlertSeverity.CRITICAL],
            low_count=risk[AlertSeverity.LOW],
        )

    def summarize_generators(
        self,
        entities: Sequence[EntityInfo],
        trends: Iterable[TrendResult],
        predictions: Iterable[PredictionResult],
    ) -> GeneratorFleetKPI:
        """Summarize all generators."""
        trends = index_results(trends)
        predictions = index_results(predictions)
        group = [e for e in entities if e.entity_type is EntityType.GENERATOR]
        averages = {}
        for entity in group:
            level = self._current_level(entity, _lookup(trends, entity))
            if level is not None:
                averages[entity.entity_id] = level

        horizons = self._horizons(group, predictions)
        risk = self._risk_counts(averages.values())

        return GeneratorFleetKPI(
            performance=_mean(list(averages.values())),
            total_capacity=float(sum(e.capacity for e in group)),
            hours_remaining=_mean(horizons),
            averages_by_generator=averages,
            entity_count=len(group),
            critical_count=risk[AlertSeverity.CRITICAL],
            low_count=risk[AlertSeverity.LOW],
        )

    @staticmethod
    def summarize_alerts(daily_alert_counts: Sequence[int]) -> AlertKPI:
        """Average daily alert volume and the change between the last two days."""
        counts = list(daily_alert_counts)
        trend = percent_change(counts[-2], counts[-1]) if len(counts) >= 2 else 0.0
        return AlertKPI(average=_mean(counts), trend=trend)

    def summarize(
        self,
        trends: Iterable[TrendResult],
        predictions: Iterable[PredictionResult],
        entities: Iterable[EntityInfo],
        daily_alert_counts: Sequence[int] = (),
        time_range_hours: int = DEFAULT_TIME_RANGE_HOURS,
    ) -> FleetKPISummary:
        """
        Build the fleet summary.

        Args:
            trends: Per-entity trend results
            predictions: Per-entity prediction results
            entities: Metadata (type, kind, capacity, level) for every entity
            daily_alert_counts: Alert counts per day over the window, oldest first
            time_range_hours: Window the inputs were computed over

        Returns:
            FleetKPISummary; empty groups report zeros
        """
        entities = list(entities)
        trends = list(trends)
        predictions = list(predictions)

        summary = FleetKPISummary(
            time_range_hours=time_range_hours,
            fuel=self.summarize_tanks(TankKind.FUEL, entities, trends, predictions),
            water=self.summarize_tanks(TankKind.WATER, entities, trends, predictions),
            generator=self.summarize_generators(entities, trends, predictions),
            alerts=self.summarize_alerts(daily_alert_counts),
        )

        self.logger.debug(
            f"Fleet summary over {len(entities)} entities: "
            f"{summary.fuel.critical_count + summary.water.critical_count + summary.generator.critical_count} critical"
        )
        return summary


def summarize_fleet(
    trends: Iterable[TrendResult],
    predictions: Iterable[PredictionResult],
    thresholds: AnalyticsThresholds,
    entities: Iterable[EntityInfo],
    daily_alert_counts: Sequence[int] = (),
    time_range_hours: int = DEFAULT_TIME_RANGE_HOURS,
) -> FleetKPISummary:
    """Roll per-entity analytics up into a fleet KPI summary."""
    summarizer = FleetSummarizer(thresholds)
    return summarizer.summarize(trends, predictions, entities, daily_alert_counts, time_range_hours)
