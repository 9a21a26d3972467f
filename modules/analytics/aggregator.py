"""
Data Aggregation Module for Fleet Level Analytics

Provides data aggregation pipeline that:
- Buckets multi-entity level readings by calendar period (daily, weekly, monthly)
- Averages fuel-tank, water-tank and per-generator levels per bucket
- Counts alerts per bucket and per day
- Calculates rolling averages over bucket sequences
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo

import pandas as pd

from .periods import CalendarAdapter, PersianCalendar
from .records import AggregationBucket, AlertEvent, EntityType, Granularity, Reading, TankKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Tehran"


def _reading_group(reading: Reading) -> str:
    if reading.entity_type is EntityType.GENERATOR:
        return EntityType.GENERATOR.value
    return (reading.tank_kind or TankKind.FUEL).value


def _mean_or_zero(series: pd.Series, key: str) -> float:
    value = series.get(key)
    if value is None or pd.isna(value):
        return 0.0
    return float(value)


class DataAggregator:
    """Buckets fleet readings into calendar periods."""

    def __init__(
        self,
        calendar: Optional[CalendarAdapter] = None,
        timezone: Union[str, tzinfo, None] = DEFAULT_TIMEZONE,
    ):
        """
        Initialize the data aggregator.

        Args:
            calendar: Calendar adapter producing period keys (Persian by default)
            timezone: Zone that timezone-aware timestamps are converted to
                before bucketing; naive timestamps are used as given
        """
        self.calendar = calendar or PersianCalendar()
        self.timezone = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.logger = logging.getLogger(__name__)

    def _localize(self, timestamp: datetime) -> datetime:
        if timestamp.tzinfo is not None and self.timezone is not None:
            return timestamp.astimezone(self.timezone)
        return timestamp

    def aggregate(
        self,
        readings: Iterable[Reading],
        granularity: Union[Granularity, str],
        alerts: Iterable[AlertEvent] = (),
    ) -> List[AggregationBucket]:
        """
        Aggregate readings into one bucket per calendar period.

        Args:
            readings: Readings of any mix of tanks and generators
            granularity: 'daily', 'weekly' or 'monthly'
            alerts: Alerts to count per bucket

        Returns:
            Buckets ordered by their first observed reading; empty input
            yields an empty list
        """
        granularity = Granularity(granularity)
        ordered = sorted(readings, key=lambda r: r.timestamp)
        if not ordered:
            return []

        local_times = [self._localize(r.timestamp) for r in ordered]
        df = pd.DataFrame({
            'order': range(len(ordered)),
            'period': [self.calendar.period_key(ts, granularity) for ts in local_times],
            'group': [_reading_group(r) for r in ordered],
            'entity_id': [r.entity_id for r in ordered],
            'level': [float(r.level) for r in ordered],
        })

        grouped = df.groupby('period', sort=False)
        bounds = grouped['order'].agg(['min', 'max'])
        counts = grouped.size()

        tanks = df[df['group'] != EntityType.GENERATOR.value]
        if tanks.empty:
            tank_means = pd.DataFrame()
        else:
            tank_means = tanks.groupby(['period', 'group'])['level'].mean().unstack('group')
        fuel_means = tank_means.get(TankKind.FUEL.value, pd.Series(dtype=float))
        water_means = tank_means.get(TankKind.WATER.value, pd.Series(dtype=float))

        generators = df[df['group'] == EntityType.GENERATOR.value]
        generator_means: Dict[str, Dict[str, float]] = {}
        if not generators.empty:
            for (period, entity_id), value in generators.groupby(['period', 'entity_id'])['level'].mean().items():
                generator_means.setdefault(period, {})[entity_id] = float(value)

        alert_counts = Counter(
            self.calendar.period_key(self._localize(alert.timestamp), granularity)
            for alert in alerts
        )

        buckets = []
        for period in bounds.sort_values('min').index:
            first = int(bounds.at[period, 'min'])
            last = int(bounds.at[period, 'max'])
            buckets.append(AggregationBucket(
                period_key=period,
                label=self.calendar.period_label(local_times[first], granularity),
                start_date=local_times[first],
                end_date=local_times[last],
                fuel_average=_mean_or_zero(fuel_means, period),
                water_average=_mean_or_zero(water_means, period),
                per_generator_average=generator_means.get(period, {}),
                alert_count=alert_counts.get(period, 0),
                reading_count=int(counts[period]),
            ))

        self.logger.debug(
            f"Aggregated {len(ordered)} readings into {len(buckets)} {granularity.value} buckets"
        )
        return buckets

    def count_alerts_per_day(
        self,
        alerts: Iterable[AlertEvent],
        start: Union[datetime, date],
        end: Union[datetime, date],
    ) -> List[int]:
        """
        Count alerts per calendar day over an inclusive date range.

        Days without alerts are reported as zero so day-over-day comparisons
        line up with the calendar.
        """
        start_day = self._localize(start).date() if isinstance(start, datetime) else start
        end_day = self._localize(end).date() if isinstance(end, datetime) else end
        if end_day < start_day:
            return []

        per_day = Counter(self._localize(alert.timestamp).date() for alert in alerts)
        span = (end_day - start_day).days
        return [per_day.get(start_day + timedelta(days=offset), 0) for offset in range(span + 1)]

    def calculate_rolling_averages(
        self,
        buckets: Sequence[AggregationBucket],
        window_size: int = 7,
    ) -> List[Dict[str, Any]]:
        """
        Calculate rolling averages of fuel and water levels over a bucket sequence.

        Args:
            buckets: Buckets in period order
            window_size: Rolling window size in buckets

        Returns:
            One record per bucket with rolling mean and standard deviation
        """
        if not buckets:
            return []

        df = pd.DataFrame({
            'period': [b.period_key for b in buckets],
            'fuel': [b.fuel_average for b in buckets],
            'water': [b.water_average for b in buckets],
        })

        rolling = df[['fuel', 'water']].rolling(window=window_size, min_periods=1)
        means = rolling.mean()
        stds = rolling.std().fillna(0.0)

        return [
            {
                'period': df.at[i, 'period'],
                'fuelRollingAvg': float(means.at[i, 'fuel']),
                'fuelRollingStd': float(stds.at[i, 'fuel']),
                'waterRollingAvg': float(means.at[i, 'water']),
                'waterRollingStd': float(stds.at[i, 'water']),
            }
            for i in df.index
        ]


# Convenience functions for direct usage
def aggregate(
    readings: Iterable[Reading],
    granularity: Union[Granularity, str],
    alerts: Iterable[AlertEvent] = (),
    calendar: Optional[CalendarAdapter] = None,
) -> List[AggregationBucket]:
    """Aggregate readings into calendar period buckets."""
    aggregator = DataAggregator(calendar)
    return aggregator.aggregate(readings, granularity, alerts)


def calculate_rolling_averages(
    buckets: Sequence[AggregationBucket],
    window_size: int = 7,
) -> List[Dict[str, Any]]:
    """Calculate rolling averages over a bucket sequence."""
    aggregator = DataAggregator()
    return aggregator.calculate_rolling_averages(buckets, window_size)
