"""
Analytics Engine Module for Fleet Level Analytics

This module provides analytics capabilities including:
- Trend classification (trends.py)
- Depletion prediction (predictions.py)
- Calendar period aggregation (aggregator.py, periods.py)
- Level alert classification (alerts.py)
- Fleet KPI summaries (fleet.py)

The request-level service that ties these to the reading store and the cache
lives in ``modules.analytics.service``.
"""

from .records import (
    EntityType,
    TankKind,
    TrendDirection,
    TimeUnit,
    Confidence,
    Granularity,
    Reading,
    EntityInfo,
    AlertEvent,
    TrendResult,
    PredictionResult,
    AggregationBucket,
    FleetKPISummary
)

from .trends import (
    TrendAnalyzer,
    analyze_trend
)

from .predictions import (
    DepletionPredictor,
    predict_depletion
)

from .periods import (
    CalendarAdapter,
    GregorianCalendar,
    PersianCalendar,
    get_calendar
)

from .aggregator import (
    DataAggregator,
    aggregate,
    calculate_rolling_averages
)

from .alerts import (
    AlertSeverity,
    classify_level
)

from .fleet import (
    FleetSummarizer,
    summarize_fleet
)

__all__ = [
    # Records
    'EntityType',
    'TankKind',
    'TrendDirection',
    'TimeUnit',
    'Confidence',
    'Granularity',
    'Reading',
    'EntityInfo',
    'AlertEvent',
    'TrendResult',
    'PredictionResult',
    'AggregationBucket',
    'FleetKPISummary',

    # Trends and predictions
    'TrendAnalyzer',
    'analyze_trend',
    'DepletionPredictor',
    'predict_depletion',

    # Aggregator
    'CalendarAdapter',
    'GregorianCalendar',
    'PersianCalendar',
    'get_calendar',
    'DataAggregator',
    'aggregate',
    'calculate_rolling_averages',

    # Alerts and fleet
    'AlertSeverity',
    'classify_level',
    'FleetSummarizer',
    'summarize_fleet',
]
