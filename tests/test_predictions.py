"""
Tests for depletion prediction.

Tests cover:
- Sample size gate and confidence tiers
- Linear extrapolation for day and hour units
- Recommendation bands for tanks and generators
- Refills, flat series and zero elapsed time
"""

from datetime import timedelta

import pytest

from modules.analytics.predictions import (
    INSUFFICIENT_DATA_RECOMMENDATION,
    NO_DEPLETION_RECOMMENDATION,
    DepletionPredictor,
    RecommendationBands,
    generator_bands,
    predict_depletion,
    tank_bands,
    unit_for,
)
from modules.analytics.records import Confidence, EntityType, TimeUnit


class TestRecommendationBands:
    """Test recommendation band selection."""

    @pytest.mark.parametrize("remaining,expected", [
        (0.5, "critical"),
        (1.0, "plan"),
        (2.9, "plan"),
        (3.0, "stable"),
        (30.0, "stable"),
    ])
    def test_tank_bands(self, remaining, expected):
        bands = tank_bands()
        message = bands.recommend(remaining)
        expected_message = {
            "critical": bands.critical_message,
            "plan": bands.plan_ahead_message,
            "stable": bands.stable_message,
        }[expected]
        assert message == expected_message

    def test_generator_bands_use_hours(self):
        bands = generator_bands()
        assert bands.recommend(23.0) == bands.critical_message
        assert bands.recommend(48.0) == bands.plan_ahead_message
        assert bands.recommend(72.0) == bands.stable_message

    def test_unit_for_entity_type(self):
        assert unit_for(EntityType.TANK) is TimeUnit.DAYS
        assert unit_for(EntityType.GENERATOR) is TimeUnit.HOURS


class TestDepletionPredictor:
    """Test DepletionPredictor."""

    def test_min_samples_must_allow_a_rate(self):
        with pytest.raises(ValueError):
            DepletionPredictor(min_samples=1)

    def test_insufficient_samples(self, make_readings):
        readings = make_readings([60.0 - i for i in range(9)])
        result = DepletionPredictor().predict(readings, None, TimeUnit.DAYS)

        assert result.predicted_remaining is None
        assert result.confidence is Confidence.LOW
        assert result.recommendation == INSUFFICIENT_DATA_RECOMMENDATION
        assert result.sample_count == 9
        assert result.entity_type is EntityType.TANK

    def test_hourly_depletion_for_generator(self, make_readings):
        """1% per hour from 60 to 50 leaves 50 hours."""
        readings = make_readings(
            [60.0 - i for i in range(11)],
            entity_id='gen-1',
            entity_type=EntityType.GENERATOR,
        )
        result = DepletionPredictor().predict(readings, 50.0, TimeUnit.HOURS)

        assert result.entity_id == 'gen-1'
        assert result.entity_type is EntityType.GENERATOR
        assert result.consumption_rate_per_unit == pytest.approx(1.0)
        assert result.predicted_remaining == pytest.approx(50.0)
        assert result.predicted_days == pytest.approx(50.0 / 24)
        assert result.confidence is Confidence.MEDIUM
        assert result.recommendation == generator_bands().plan_ahead_message

    def test_daily_depletion_for_tank(self, make_readings):
        """10% per day over ten days leaves current / rate days."""
        readings = make_readings([100.0 - 10 * i for i in range(11)], step=timedelta(days=1))
        result = DepletionPredictor().predict(readings, None, TimeUnit.DAYS)

        assert result.consumption_rate_per_unit == pytest.approx(10.0)
        assert result.predicted_remaining == pytest.approx(0.0)
        assert result.recommendation == tank_bands().critical_message

    def test_monotonic_depletion_matches_level_over_rate(self, make_readings):
        readings = make_readings([90.0 - 2.5 * i for i in range(20)], step=timedelta(hours=6))
        result = DepletionPredictor().predict(readings, 42.5, TimeUnit.DAYS)

        # 2.5% per 6 hours is 10% per day
        assert result.consumption_rate_per_unit == pytest.approx(10.0)
        assert result.predicted_remaining == pytest.approx(4.25)
        assert result.recommendation == tank_bands().stable_message

    def test_current_level_defaults_to_last_reading(self, make_readings):
        readings = make_readings([60.0 - i for i in range(11)])
        result = DepletionPredictor().predict(readings, None, TimeUnit.HOURS)
        assert result.current_level == 50.0

    def test_high_confidence_above_48_samples(self, make_readings):
        readings = make_readings([100.0 - 0.5 * i for i in range(49)])
        result = DepletionPredictor().predict(readings, None, TimeUnit.HOURS)
        assert result.confidence is Confidence.HIGH

    def test_exactly_48_samples_is_medium(self, make_readings):
        readings = make_readings([100.0 - 0.5 * i for i in range(48)])
        result = DepletionPredictor().predict(readings, None, TimeUnit.HOURS)
        assert result.confidence is Confidence.MEDIUM

    def test_refill_produces_no_forecast(self, make_readings):
        readings = make_readings([20.0 + 5 * i for i in range(12)])
        result = DepletionPredictor().predict(readings, None, TimeUnit.DAYS)

        assert result.predicted_remaining is None
        assert result.consumption_rate_per_unit == 0.0
        assert result.recommendation == NO_DEPLETION_RECOMMENDATION
        assert result.confidence is Confidence.MEDIUM

    def test_flat_series_produces_no_forecast(self, make_readings):
        result = DepletionPredictor().predict(make_readings([70.0] * 12), None, TimeUnit.DAYS)
        assert result.predicted_remaining is None

    def test_zero_elapsed_time_produces_no_forecast(self, make_readings):
        readings = make_readings([60.0 - i for i in range(11)], step=timedelta(0))
        result = DepletionPredictor().predict(readings, None, TimeUnit.HOURS)
        assert result.predicted_remaining is None

    def test_custom_bands(self, make_readings):
        bands = RecommendationBands(
            critical=100.0,
            plan_ahead=200.0,
            critical_message="now",
            plan_ahead_message="soon",
            stable_message="fine",
        )
        readings = make_readings([60.0 - i for i in range(11)])
        result = predict_depletion(readings, 50.0, TimeUnit.HOURS, bands=bands)
        assert result.recommendation == "now"


class TestPredictionResultDict:
    """Test the JSON shape of prediction results."""

    def test_to_dict(self, make_readings):
        readings = make_readings([60.0 - i for i in range(11)], entity_id='gen-1', entity_type=EntityType.GENERATOR)
        data = predict_depletion(readings, 50.0, TimeUnit.HOURS).to_dict()

        assert data['entityId'] == 'gen-1'
        assert data['unit'] == 'hours'
        assert data['predictedRemaining'] == 50.0
        assert data['predictedDays'] == 2.1
        assert data['confidence'] == 'medium'
        assert data['dataPoints'] == 11

    def test_to_dict_without_forecast(self, make_readings):
        data = predict_depletion(make_readings([50.0]), None, TimeUnit.DAYS).to_dict()

        assert data['predictedRemaining'] is None
        assert data['predictedDays'] is None
