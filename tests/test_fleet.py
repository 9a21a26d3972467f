"""
Tests for level alerts and fleet KPI summaries.

Tests cover:
- Level classification against inclusive thresholds
- Level alert construction
- Tank and generator fleet figures
- Efficiency calculation and clamping
- Alert volume trend
- Empty groups
"""

from datetime import datetime

import pytest

from modules.analytics.alerts import (
    AlertSeverity,
    build_level_alert,
    classify_level,
)
from modules.analytics.fleet import FleetSummarizer, summarize_fleet
from modules.analytics.records import (
    Confidence,
    EntityInfo,
    EntityType,
    PredictionResult,
    TankKind,
    TimeUnit,
    TrendDirection,
    TrendResult,
)


def make_trend(entity_id, change_rate, current=None, insufficient=False, entity_type=None):
    return TrendResult(
        entity_id=entity_id,
        direction=TrendDirection.STABLE,
        change_rate_percent=change_rate,
        current_level=current,
        previous_level=None,
        sample_count=0 if insufficient else 12,
        insufficient_data=insufficient,
        entity_type=entity_type,
    )


def make_prediction(entity_id, remaining, rate, unit=TimeUnit.DAYS, entity_type=None):
    return PredictionResult(
        entity_id=entity_id,
        unit=unit,
        predicted_remaining=remaining,
        consumption_rate_per_unit=rate,
        recommendation="",
        confidence=Confidence.MEDIUM,
        entity_type=entity_type,
    )


class TestClassifyLevel:
    """Test level classification."""

    @pytest.mark.parametrize("level,expected", [
        (0.0, AlertSeverity.CRITICAL),
        (10.0, AlertSeverity.CRITICAL),
        (10.5, AlertSeverity.LOW),
        (15.0, AlertSeverity.LOW),
        (20.0, AlertSeverity.LOW),
        (21.0, None),
        (100.0, None),
    ])
    def test_partition(self, thresholds, level, expected):
        assert classify_level(level, thresholds) is expected


class TestBuildLevelAlert:
    """Test level alert construction."""

    def test_critical_tank_alert(self, thresholds):
        ts = datetime(2024, 3, 25, 12, 0)
        alert = build_level_alert(EntityType.TANK, 'fuel-2', 8.0, thresholds, timestamp=ts, name='Spare Fuel')

        assert alert.severity is AlertSeverity.CRITICAL
        assert alert.title == "Critical: Tank Level"
        assert alert.message == "Tank Spare Fuel is at 8.0% (threshold: 10%)"
        assert alert.threshold == 10.0
        assert alert.timestamp == ts
        assert alert.metadata == {'name': 'Spare Fuel'}

    def test_low_generator_alert(self, thresholds):
        alert = build_level_alert(EntityType.GENERATOR, 'gen-1', 15.0, thresholds)

        assert alert.severity is AlertSeverity.LOW
        assert alert.title == "Low Generator Level"
        assert "gen-1" in alert.message
        assert alert.to_dict()['severity'] == 'low'

    def test_healthy_level_has_no_alert(self, thresholds):
        assert build_level_alert(EntityType.TANK, 'fuel-1', 50.0, thresholds) is None


class TestFleetSummarizer:
    """Test FleetSummarizer."""

    @pytest.fixture
    def summarizer(self, thresholds):
        return FleetSummarizer(thresholds)

    def test_fuel_group(self, summarizer, fleet_entities):
        trends = [
            make_trend('fuel-1', -10.0),
            make_trend('fuel-2', -20.0),
        ]
        kpi = summarizer.summarize_tanks(TankKind.FUEL, fleet_entities, trends, [])

        assert kpi.entity_count == 2
        assert kpi.average == pytest.approx(30.0)
        assert kpi.trend == pytest.approx(-15.0)
        assert kpi.direction is TrendDirection.DECREASING
        assert kpi.total_capacity == 2000.0
        assert kpi.critical_count == 1
        assert kpi.low_count == 0

    def test_insufficient_trends_are_excluded(self, summarizer, fleet_entities):
        trends = [
            make_trend('fuel-1', 8.0),
            make_trend('fuel-2', 0.0, insufficient=True),
        ]
        kpi = summarizer.summarize_tanks(TankKind.FUEL, fleet_entities, trends, [])

        assert kpi.trend == pytest.approx(8.0)
        assert kpi.direction is TrendDirection.INCREASING

    def test_efficiency(self, summarizer):
        """10% per day of a 1000 L tank is 100 L/day, i.e. 10% of capacity."""
        entities = [EntityInfo('fuel-1', EntityType.TANK, 1000.0, 50.0, tank_kind=TankKind.FUEL)]
        predictions = [make_prediction('fuel-1', 5.0, 10.0)]
        kpi = summarizer.summarize_tanks(TankKind.FUEL, entities, [], predictions)

        assert kpi.efficiency == pytest.approx(10.0)
        assert kpi.efficiency_raw == pytest.approx(10.0)
        assert kpi.days_remaining == pytest.approx(5.0)

    def test_efficiency_is_clamped(self, summarizer):
        entities = [EntityInfo('fuel-1', EntityType.TANK, 1000.0, 50.0, tank_kind=TankKind.FUEL)]
        predictions = [make_prediction('fuel-1', 0.1, 500.0)]
        kpi = summarizer.summarize_tanks(TankKind.FUEL, entities, [], predictions)

        assert kpi.efficiency == 100.0
        assert kpi.efficiency_raw == pytest.approx(500.0)

    def test_days_remaining_skips_missing_forecasts(self, summarizer, fleet_entities):
        predictions = [
            make_prediction('fuel-1', 4.0, 5.0),
            make_prediction('fuel-2', None, 0.0),
        ]
        kpi = summarizer.summarize_tanks(TankKind.FUEL, fleet_entities, [], predictions)
        assert kpi.days_remaining == pytest.approx(4.0)

    def test_current_level_falls_back_to_trend(self, summarizer):
        entities = [EntityInfo('water-1', EntityType.TANK, 2000.0, None, tank_kind=TankKind.WATER)]
        trends = [make_trend('water-1', 0.0, current=64.0)]
        kpi = summarizer.summarize_tanks(TankKind.WATER, entities, trends, [])
        assert kpi.average == pytest.approx(64.0)

    def test_generators(self, summarizer, fleet_entities):
        predictions = [
            make_prediction('gen-1', 7.5, 2.0, TimeUnit.HOURS),
            make_prediction('gen-2', None, 0.0, TimeUnit.HOURS),
        ]
        kpi = summarizer.summarize_generators(fleet_entities, [], predictions)

        assert kpi.entity_count == 2
        assert kpi.performance == pytest.approx(52.5)
        assert kpi.averages_by_generator == {'gen-1': 15.0, 'gen-2': 90.0}
        assert kpi.hours_remaining == pytest.approx(7.5)
        assert kpi.total_capacity == 800.0
        assert kpi.low_count == 1
        assert kpi.critical_count == 0

    @pytest.mark.parametrize("counts,average,trend", [
        ([2, 4], 3.0, 100.0),
        ([0, 3], 1.5, 0.0),
        ([5, 0, 1, 2], 2.0, 100.0),
        ([4], 4.0, 0.0),
        ([], 0.0, 0.0),
    ])
    def test_alert_summary(self, counts, average, trend):
        kpi = FleetSummarizer.summarize_alerts(counts)
        assert kpi.average == pytest.approx(average)
        assert kpi.trend == pytest.approx(trend)

    def test_tank_and_generator_sharing_an_id(self, summarizer):
        entities = [
            EntityInfo('1', EntityType.TANK, 1000.0, 80.0, tank_kind=TankKind.FUEL),
            EntityInfo('1', EntityType.GENERATOR, 500.0, 50.0),
        ]
        trends = [
            make_trend('1', -2.375, entity_type=EntityType.TANK),
            make_trend('1', -27.14, entity_type=EntityType.GENERATOR),
        ]
        predictions = [
            make_prediction('1', 33.33, 2.4, entity_type=EntityType.TANK),
            make_prediction('1', 50.0, 1.0, TimeUnit.HOURS, entity_type=EntityType.GENERATOR),
        ]

        summary = summarizer.summarize(trends, predictions, entities)

        assert summary.fuel.days_remaining == pytest.approx(33.33)
        assert summary.fuel.trend == pytest.approx(-2.375)
        assert summary.fuel.efficiency == pytest.approx(2.4)
        assert summary.generator.hours_remaining == pytest.approx(50.0)
        assert summary.generator.averages_by_generator == {'1': 50.0}

    def test_empty_fleet_reports_zeros(self, summarizer):
        summary = summarizer.summarize([], [], [])

        assert summary.fuel.average == 0.0
        assert summary.fuel.entity_count == 0
        assert summary.fuel.direction is TrendDirection.STABLE
        assert summary.water.efficiency == 0.0
        assert summary.generator.performance == 0.0
        assert summary.generator.averages_by_generator == {}
        assert summary.alerts.average == 0.0


class TestSummarizeFleet:
    """Test the module-level convenience function."""

    def test_full_summary(self, thresholds, fleet_entities):
        trends = [make_trend('fuel-1', -10.0), make_trend('water-1', 0.0)]
        predictions = [make_prediction('gen-1', 7.5, 2.0, TimeUnit.HOURS)]

        summary = summarize_fleet(trends, predictions, thresholds, fleet_entities, [1, 2], time_range_hours=24)
        data = summary.to_dict()

        assert data['timeRangeHours'] == 24
        assert data['fuel']['count'] == 2
        assert data['water']['average'] == pytest.approx(80.0)
        assert data['generator']['hoursRemaining'] == pytest.approx(7.5)
        assert data['alerts'] == {'average': 1.5, 'trend': 100.0}
