"""
Depletion Prediction Module for Fleet Level Analytics

Extrapolates the observed linear consumption rate of a tank or generator
into the time remaining until its level reaches zero:
- Days remaining for tanks, hours remaining for generators
- Three-tier recommendation keyed by configurable horizon bands
- Confidence tier based on sample size
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .records import Confidence, EntityType, PredictionResult, Reading, TimeUnit

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAMPLES = 10
DEFAULT_HIGH_CONFIDENCE_SAMPLES = 48

INSUFFICIENT_DATA_RECOMMENDATION = "Not enough data to forecast depletion."
NO_DEPLETION_RECOMMENDATION = "Level is stable or rising; no depletion expected."


@dataclass(frozen=True)
class RecommendationBands:
    """Horizon boundaries for the critical / plan-ahead / stable messages."""
    critical: float
    plan_ahead: float
    critical_message: str
    plan_ahead_message: str
    stable_message: str

    def recommend(self, remaining: float) -> str:
        if remaining < self.critical:
            return self.critical_message
        if remaining < self.plan_ahead:
            return self.plan_ahead_message
        return self.stable_message


def tank_bands(critical_days: float = 1.0, plan_ahead_days: float = 3.0) -> RecommendationBands:
    """Recommendation bands for tanks, in days."""
    return RecommendationBands(
        critical=critical_days,
        plan_ahead=plan_ahead_days,
        critical_message="Tank level is critical. Refill immediately.",
        plan_ahead_message="Tank level is low. Schedule a refill.",
        stable_message="Tank level is in good condition.",
    )


def generator_bands(critical_hours: float = 24.0, plan_ahead_hours: float = 72.0) -> RecommendationBands:
    """Recommendation bands for generators, in hours."""
    return RecommendationBands(
        critical=critical_hours,
        plan_ahead=plan_ahead_hours,
        critical_message="Generator fuel is running out. Refuel immediately.",
        plan_ahead_message="Generator fuel is low. Schedule refuelling.",
        stable_message="Generator fuel is at a good level.",
    )


def unit_for(entity_type: EntityType) -> TimeUnit:
    """Forecast unit used for an entity type."""
    return TimeUnit.DAYS if entity_type is EntityType.TANK else TimeUnit.HOURS


class DepletionPredictor:
    """Forecasts time remaining until depletion from a reading window."""

    def __init__(
        self,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        high_confidence_samples: int = DEFAULT_HIGH_CONFIDENCE_SAMPLES,
        tank_recommendations: Optional[RecommendationBands] = None,
        generator_recommendations: Optional[RecommendationBands] = None,
    ):
        """
        Initialize the predictor.

        Args:
            min_samples: Readings required before any forecast is made
            high_confidence_samples: Readings above which confidence is high
            tank_recommendations: Bands (days) used for day-unit forecasts
            generator_recommendations: Bands (hours) used for hour-unit forecasts
        """
        if min_samples < 2:
            raise ValueError("min_samples must be at least 2")
        self.min_samples = min_samples
        self.high_confidence_samples = high_confidence_samples
        self.tank_recommendations = tank_recommendations or tank_bands()
        self.generator_recommendations = generator_recommendations or generator_bands()
        self.logger = logging.getLogger(__name__)

    def _bands_for(self, unit: TimeUnit) -> RecommendationBands:
        if unit is TimeUnit.DAYS:
            return self.tank_recommendations
        return self.generator_recommendations

    def predict(
        self,
        readings: Iterable[Reading],
        current_level: Optional[float],
        unit: TimeUnit,
        entity_id: Optional[str] = None,
        entity_type: Optional[EntityType] = None,
    ) -> PredictionResult:
        """
        Forecast the depletion horizon of one entity.

        The consumption rate is the net level drop between the first and last
        reading divided by the observed time span. A net rise (refill) or a
        flat series produces no forecast.

        Args:
            readings: Readings inside the lookback window, any order
            current_level: Latest known level; defaults to the last reading
            unit: Horizon unit (days for tanks, hours for generators)
            entity_id: Entity the readings belong to
            entity_type: Type of that entity (taken from the readings if omitted)

        Returns:
            PredictionResult with predicted_remaining None when there is no
            depletion signal
        """
        ordered = sorted(readings, key=lambda r: r.timestamp)
        if entity_id is None and ordered:
            entity_id = ordered[0].entity_id
        if entity_type is None and ordered:
            entity_type = ordered[0].entity_type
        if current_level is None and ordered:
            current_level = ordered[-1].level

        sample_count = len(ordered)
        if sample_count < self.min_samples:
            return PredictionResult(
                entity_id=entity_id,
                unit=unit,
                predicted_remaining=None,
                consumption_rate_per_unit=0.0,
                recommendation=INSUFFICIENT_DATA_RECOMMENDATION,
                confidence=Confidence.LOW,
                current_level=current_level,
                sample_count=sample_count,
                entity_type=entity_type,
            )

        confidence = (
            Confidence.HIGH if sample_count > self.high_confidence_samples else Confidence.MEDIUM
        )

        total_drop = ordered[0].level - ordered[-1].level
        elapsed_units = (ordered[-1].timestamp - ordered[0].timestamp).total_seconds() / unit.seconds

        if total_drop <= 0 or elapsed_units <= 0:
            if total_drop < 0:
                self.logger.debug(f"Net refill of {-total_drop:.2f}% for {entity_id}, no forecast")
            return PredictionResult(
                entity_id=entity_id,
                unit=unit,
                predicted_remaining=None,
                consumption_rate_per_unit=0.0,
                recommendation=NO_DEPLETION_RECOMMENDATION,
                confidence=confidence,
                current_level=current_level,
                sample_count=sample_count,
                entity_type=entity_type,
            )

        rate = total_drop / elapsed_units
        remaining = max(current_level or 0.0, 0.0) / rate

        return PredictionResult(
            entity_id=entity_id,
            unit=unit,
            predicted_remaining=remaining,
            consumption_rate_per_unit=rate,
            recommendation=self._bands_for(unit).recommend(remaining),
            confidence=confidence,
            current_level=current_level,
            sample_count=sample_count,
            entity_type=entity_type,
        )


def predict_depletion(
    readings: Iterable[Reading],
    current_level: Optional[float],
    unit: TimeUnit,
    entity_id: Optional[str] = None,
    min_samples: int = DEFAULT_MIN_SAMPLES,
    high_confidence_samples: int = DEFAULT_HIGH_CONFIDENCE_SAMPLES,
    bands: Optional[RecommendationBands] = None,
) -> PredictionResult:
    """Forecast the depletion horizon of one entity, optionally with custom bands for ``unit``."""
    if unit is TimeUnit.DAYS:
        predictor = DepletionPredictor(min_samples, high_confidence_samples, tank_recommendations=bands)
    else:
        predictor = DepletionPredictor(min_samples, high_confidence_samples, generator_recommendations=bands)
    return predictor.predict(readings, current_level, unit, entity_id)
