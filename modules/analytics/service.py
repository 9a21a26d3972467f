"""
Fleet analytics service.

Orchestrates the reading store, the per-entity analyzers, the aggregation
engine and the cache into the JSON-ready responses consumed by dashboards
and reports:
- Single-entity trend and prediction
- Bulk trends and predictions for many entities
- Aggregated KPIs per calendar period
- Fleet KPI summary
- Consumption KPIs with per-entity trends
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from modules.database.queries import (
    ReadingStore,
    SqlReadingStore,
    fetch_readings_concurrently,
)
from utils.cache import CacheManager, cache_manager, make_cache_key
from utils.config import Settings, settings
from utils.logging_config import log_analytics_run

from .aggregator import DataAggregator
from .fleet import FleetSummarizer
from .periods import get_calendar
from .predictions import DepletionPredictor, generator_bands, tank_bands, unit_for
from .records import (
    EntityInfo,
    EntityType,
    Granularity,
    PredictionResult,
    Reading,
    TankKind,
    TrendResult,
)
from .trends import TrendAnalyzer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FleetAnalyticsService:
    """Request-level entry point of the analytics engine."""

    def __init__(
        self,
        store: ReadingStore,
        cache: Optional[CacheManager] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the service.

        Args:
            store: Reading store to fetch readings, entities and alerts from
            cache: Cache manager for memoized responses (global manager by default)
            config: Settings (global settings by default)
            clock: Returns the current aware time; injectable for tests
        """
        self.store = store
        self.cache = cache if cache is not None else cache_manager
        self.config = config or settings
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self.trend_analyzer = TrendAnalyzer(
            self.config.trend_increase_threshold,
            self.config.trend_decrease_threshold,
        )
        self.predictor = DepletionPredictor(
            min_samples=self.config.prediction_min_samples,
            high_confidence_samples=self.config.prediction_high_confidence_samples,
            tank_recommendations=tank_bands(
                self.config.tank_critical_days, self.config.tank_plan_ahead_days
            ),
            generator_recommendations=generator_bands(
                self.config.generator_critical_hours, self.config.generator_plan_ahead_hours
            ),
        )
        self.aggregator = DataAggregator(
            get_calendar(self.config.calendar),
            self.config.reporting_timezone,
        )

    def _memoize(self, prefix: str, compute: Callable[[], Dict[str, Any]], **params) -> Tuple[Dict[str, Any], bool]:
        """Return ``(response, served_from_cache)``."""
        if not self.config.enable_caching:
            return compute(), False

        computed = []

        def tracked():
            computed.append(True)
            return compute()

        key = make_cache_key(prefix, **params)
        result = self.cache.get_or_compute(key, tracked, self.config.cache_ttl_seconds)
        return result, not computed

    def _resolve_entities(
        self,
        tank_ids: Optional[Sequence[str]],
        generator_ids: Optional[Sequence[str]],
    ) -> List[EntityInfo]:
        """Empty or missing id lists select every entity of that type."""
        tanks = self.store.get_entities(EntityType.TANK, list(tank_ids) if tank_ids else None)
        generators = self.store.get_entities(EntityType.GENERATOR, list(generator_ids) if generator_ids else None)
        return tanks + generators

    def _analyze(
        self,
        entities: Sequence[EntityInfo],
        trend_hours: int,
    ) -> Tuple[List[TrendResult], List[PredictionResult]]:
        """Trend and prediction for every entity from one concurrent fetch."""
        now = self.clock()
        trend_since = now - timedelta(hours=trend_hours)
        prediction_since = now - timedelta(hours=self.config.prediction_lookback_hours)

        readings = fetch_readings_concurrently(
            self.store,
            [(e.entity_type, e.entity_id) for e in entities],
            since=min(trend_since, prediction_since),
            max_workers=self.config.max_fetch_workers,
        )

        trends, predictions = [], []
        for entity in entities:
            series: List[Reading] = readings.get((entity.entity_type, entity.entity_id), [])
            trends.append(self.trend_analyzer.analyze(
                [r for r in series if r.timestamp >= trend_since], entity.entity_id, entity.entity_type
            ))
            predictions.append(self.predictor.predict(
                [r for r in series if r.timestamp >= prediction_since],
                entity.current_level,
                unit_for(entity.entity_type),
                entity.entity_id,
                entity.entity_type,
            ))
        return trends, predictions

    @staticmethod
    def _split_by_type(entities: Sequence[EntityInfo], results) -> Dict[str, Dict[str, Any]]:
        grouped: Dict[str, Dict[str, Any]] = {'tanks': {}, 'generators': {}}
        for entity, result in zip(entities, results):
            group = 'tanks' if entity.entity_type is EntityType.TANK else 'generators'
            grouped[group][entity.entity_id] = result.to_dict()
        return grouped

    def get_entity_trend(self, entity_type, entity_id: str, hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Trend of one tank or generator.

        Raises:
            EntityNotFoundError: Unknown entity id
        """
        start_time = time.perf_counter()
        entity_type = EntityType(entity_type)
        hours = hours or self.config.trend_lookback_hours

        try:
            self.store.get_entity(entity_type, entity_id)
            readings = self.store.readings(entity_type, entity_id, self.clock() - timedelta(hours=hours))
        except Exception as e:
            self.logger.error(f"Error fetching trend data for {entity_type.value} {entity_id}: {e}")
            raise

        result = self.trend_analyzer.analyze(readings, entity_id, entity_type).to_dict()
        log_analytics_run("trend", 1, (time.perf_counter() - start_time) * 1000, hours=hours)
        return result

    def get_entity_prediction(self, entity_type, entity_id: str) -> Dict[str, Any]:
        """
        Depletion prediction of one tank or generator.

        Raises:
            EntityNotFoundError: Unknown entity id
        """
        start_time = time.perf_counter()
        entity_type = EntityType(entity_type)
        since = self.clock() - timedelta(hours=self.config.prediction_lookback_hours)

        try:
            entity = self.store.get_entity(entity_type, entity_id)
            readings = self.store.readings(entity_type, entity_id, since)
        except Exception as e:
            self.logger.error(f"Error fetching prediction data for {entity_type.value} {entity_id}: {e}")
            raise

        result = self.predictor.predict(
            readings, entity.current_level, unit_for(entity_type), entity_id, entity_type
        ).to_dict()
        log_analytics_run("prediction", 1, (time.perf_counter() - start_time) * 1000)
        return result

    def get_bulk_analytics(
        self,
        tank_ids: Optional[Sequence[str]] = None,
        generator_ids: Optional[Sequence[str]] = None,
        hours: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Trends and predictions for many entities, keyed by type and id."""
        start_time = time.perf_counter()
        hours = hours or self.config.trend_lookback_hours

        try:
            entities = self._resolve_entities(tank_ids, generator_ids)
            trends, predictions = self._analyze(entities, hours)
        except Exception as e:
            self.logger.error(f"Error calculating bulk analytics: {e}")
            raise

        response = {
            'trends': self._split_by_type(entities, trends),
            'predictions': self._split_by_type(entities, predictions),
            'timestamp': self.clock().isoformat(),
        }
        log_analytics_run("bulk", len(entities), (time.perf_counter() - start_time) * 1000, hours=hours)
        return response

    def get_aggregated_kpis(
        self,
        granularity='daily',
        time_range_days: int = 30,
        tank_ids: Optional[Sequence[str]] = None,
        generator_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """
        Per-period KPIs over the last ``time_range_days`` days.

        Raises:
            ValueError: Unknown granularity
        """
        start_time = time.perf_counter()
        granularity = Granularity(granularity)

        def compute() -> Dict[str, Any]:
            end = self.clock()
            start = end - timedelta(days=time_range_days)
            entities = self._resolve_entities(tank_ids, generator_ids)
            tanks = [e for e in entities if e.entity_type is EntityType.TANK]
            generators = [e for e in entities if e.entity_type is EntityType.GENERATOR]

            readings = []
            if tanks:
                readings += self.store.readings_between(
                    EntityType.TANK, start, end, [e.entity_id for e in tanks]
                )
            if generators:
                readings += self.store.readings_between(
                    EntityType.GENERATOR, start, end, [e.entity_id for e in generators]
                )
            alerts = self.store.alerts_between(start, end)

            buckets = self.aggregator.aggregate(readings, granularity, alerts)

            capacity = {
                'fuel': sum(e.capacity for e in tanks if e.tank_kind is not TankKind.WATER),
                'water': sum(e.capacity for e in tanks if e.tank_kind is TankKind.WATER),
                'generator': sum(e.capacity for e in generators),
            }

            kpis = []
            for bucket in buckets:
                entry = bucket.to_dict()
                generator_levels = list(bucket.per_generator_average.values())
                entry['consumption'] = {
                    'fuel': {
                        'average': bucket.fuel_average,
                        'total': capacity['fuel'],
                        'volume': bucket.fuel_average / 100.0 * capacity['fuel'],
                    },
                    'water': {
                        'average': bucket.water_average,
                        'total': capacity['water'],
                        'volume': bucket.water_average / 100.0 * capacity['water'],
                    },
                    'generator': {
                        'averages': dict(bucket.per_generator_average),
                        'total': capacity['generator'],
                        'performance': sum(generator_levels) / len(generator_levels) if generator_levels else 0.0,
                    },
                }
                kpis.append(entry)

            return {
                'aggregation': granularity.value,
                'timeRange': time_range_days,
                'kpis': kpis,
                'timestamp': end.isoformat(),
            }

        try:
            response, from_cache = self._memoize(
                "analytics-aggregated-kpis",
                compute,
                granularity=granularity,
                time_range=time_range_days,
                tank_ids=list(tank_ids or []),
                generator_ids=list(generator_ids or []),
            )
        except Exception as e:
            self.logger.error(f"Error calculating aggregated KPIs: {e}")
            raise

        log_analytics_run(
            "aggregated_kpis", len(response['kpis']), (time.perf_counter() - start_time) * 1000,
            cached=from_cache, granularity=granularity.value, time_range_days=time_range_days,
        )
        return response

    def get_fleet_summary(
        self,
        time_range_days: int = 7,
        tank_ids: Optional[Sequence[str]] = None,
        generator_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Fleet KPI summary over the last ``time_range_days`` days."""
        start_time = time.perf_counter()
        time_range_hours = time_range_days * 24

        def compute() -> Dict[str, Any]:
            end = self.clock()
            start = end - timedelta(days=time_range_days)
            entities = self._resolve_entities(tank_ids, generator_ids)
            trends, predictions = self._analyze(entities, time_range_hours)
            daily_alerts = self.aggregator.count_alerts_per_day(
                self.store.alerts_between(start, end), start, end
            )

            summarizer = FleetSummarizer(
                self.config.thresholds(),
                self.config.trend_increase_threshold,
                self.config.trend_decrease_threshold,
            )
            summary = summarizer.summarize(trends, predictions, entities, daily_alerts, time_range_hours)

            return {
                'timeRange': time_range_days,
                'summary': summary.to_dict(),
                'timestamp': end.isoformat(),
            }

        try:
            response, from_cache = self._memoize(
                "analytics-kpis-summary",
                compute,
                time_range=time_range_days,
                tank_ids=list(tank_ids or []),
                generator_ids=list(generator_ids or []),
            )
        except Exception as e:
            self.logger.error(f"Error calculating fleet summary: {e}")
            raise

        log_analytics_run(
            "fleet_summary",
            sum(response['summary'][group]['count'] for group in ('fuel', 'water', 'generator')),
            (time.perf_counter() - start_time) * 1000,
            cached=from_cache, time_range_days=time_range_days,
        )
        return response

    def get_consumption_kpis(
        self,
        time_range_days: int = 7,
        tank_ids: Optional[Sequence[str]] = None,
        generator_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Capacity, current volume and consumption rates per group plus per-entity trends."""
        start_time = time.perf_counter()

        def compute() -> Dict[str, Any]:
            entities = self._resolve_entities(tank_ids, generator_ids)
            trends, _ = self._analyze(entities, time_range_days * 24)

            def totals(group: Sequence[EntityInfo]) -> Tuple[float, float]:
                total = float(sum(e.capacity for e in group))
                current = float(sum(e.capacity * (e.current_level or 0.0) / 100.0 for e in group))
                return total, current

            fuel_total, fuel_current = totals([e for e in entities if e.group == TankKind.FUEL.value])
            water_total, water_current = totals([e for e in entities if e.group == TankKind.WATER.value])
            gen_total, gen_current = totals([e for e in entities if e.entity_type is EntityType.GENERATOR])

            return {
                'consumption': {
                    'fuel': {
                        'total': fuel_total,
                        'current': fuel_current,
                        'consumptionRate': (1 - fuel_current / fuel_total) * 100 if fuel_total > 0 else 0.0,
                    },
                    'water': {
                        'total': water_total,
                        'current': water_current,
                        'consumptionRate': (1 - water_current / water_total) * 100 if water_total > 0 else 0.0,
                    },
                    'generator': {
                        'total': gen_total,
                        'current': gen_current,
                        'usageRate': gen_current / gen_total * 100 if gen_total > 0 else 0.0,
                    },
                },
                'trends': self._split_by_type(entities, trends),
                'timestamp': self.clock().isoformat(),
            }

        try:
            response, from_cache = self._memoize(
                "analytics-kpis",
                compute,
                time_range=time_range_days,
                tank_ids=list(tank_ids or []),
                generator_ids=list(generator_ids or []),
            )
        except Exception as e:
            self.logger.error(f"Error calculating consumption KPIs: {e}")
            raise

        log_analytics_run(
            "consumption_kpis",
            len(response['trends']['tanks']) + len(response['trends']['generators']),
            (time.perf_counter() - start_time) * 1000,
            cached=from_cache, time_range_days=time_range_days,
        )
        return response


def build_service(config: Optional[Settings] = None) -> FleetAnalyticsService:
    """Service wired to the SQL reading store and the global cache."""
    return FleetAnalyticsService(SqlReadingStore(), cache_manager, config or settings)
