"""
Domain records exchanged between the reading store and the analytics engine.

Readings and entity metadata come in from the store; trends, predictions,
aggregation buckets and fleet summaries go out to dashboard and report
consumers through their ``to_dict()`` JSON shapes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EntityType(Enum):
    """Kinds of monitored entities."""
    TANK = "tank"
    GENERATOR = "generator"


class TankKind(Enum):
    """Contents of a tank."""
    FUEL = "fuel"
    WATER = "water"


class TrendDirection(Enum):
    """Directional classification of recent level change."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class TimeUnit(Enum):
    """Unit of a depletion horizon."""
    DAYS = "days"
    HOURS = "hours"

    @property
    def seconds(self) -> int:
        return 86400 if self is TimeUnit.DAYS else 3600


class Confidence(Enum):
    """Reliability tier of a prediction, based on sample size."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Granularity(Enum):
    """Calendar period used for aggregation buckets."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Reading:
    """One timestamped level observation for an entity."""
    entity_type: EntityType
    entity_id: str
    level: float
    timestamp: datetime
    recorded_by: str = "system"
    tank_kind: Optional[TankKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entityType': self.entity_type.value,
            'entityId': self.entity_id,
            'level': self.level,
            'timestamp': self.timestamp.isoformat(),
            'recordedBy': self.recorded_by,
            'tankKind': self.tank_kind.value if self.tank_kind else None,
        }


@dataclass(frozen=True)
class EntityInfo:
    """Metadata for a tank or generator."""
    entity_id: str
    entity_type: EntityType
    capacity: float
    current_level: Optional[float]
    name: str = ""
    tank_kind: Optional[TankKind] = None

    @property
    def group(self) -> str:
        """Fleet group the entity is summarized under: fuel, water or generator."""
        if self.entity_type is EntityType.GENERATOR:
            return EntityType.GENERATOR.value
        return (self.tank_kind or TankKind.FUEL).value


@dataclass(frozen=True)
class AlertEvent:
    """An alert raised for an entity at a point in time."""
    alert_id: str
    timestamp: datetime
    severity: str
    entity_id: Optional[str] = None
    entity_type: Optional[EntityType] = None


@dataclass(frozen=True)
class TrendResult:
    """Classified trend of one entity over a lookback window."""
    entity_id: Optional[str]
    direction: TrendDirection
    change_rate_percent: float
    current_level: Optional[float]
    previous_level: Optional[float]
    sample_count: int
    insufficient_data: bool = False
    message: Optional[str] = None
    entity_type: Optional[EntityType] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'entityId': self.entity_id,
            'trend': self.direction.value,
            'changeRate': round(self.change_rate_percent, 2),
            'currentLevel': self.current_level,
            'previousLevel': self.previous_level,
            'dataPoints': self.sample_count,
            'insufficientData': self.insufficient_data,
        }
        if self.message:
            result['message'] = self.message
        return result


@dataclass(frozen=True)
class PredictionResult:
    """Depletion forecast for one entity."""
    entity_id: Optional[str]
    unit: TimeUnit
    predicted_remaining: Optional[float]
    consumption_rate_per_unit: float
    recommendation: str
    confidence: Confidence
    current_level: Optional[float] = None
    sample_count: int = 0
    entity_type: Optional[EntityType] = None

    @property
    def predicted_days(self) -> Optional[float]:
        """Horizon expressed in days regardless of the forecast unit."""
        if self.predicted_remaining is None:
            return None
        if self.unit is TimeUnit.DAYS:
            return self.predicted_remaining
        return self.predicted_remaining / 24.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entityId': self.entity_id,
            'unit': self.unit.value,
            'predictedRemaining': (
                round(self.predicted_remaining, 1)
                if self.predicted_remaining is not None else None
            ),
            'predictedDays': (
                round(self.predicted_days, 1)
                if self.predicted_days is not None else None
            ),
            'consumptionRate': round(self.consumption_rate_per_unit, 3),
            'currentLevel': self.current_level,
            'recommendation': self.recommendation,
            'confidence': self.confidence.value,
            'dataPoints': self.sample_count,
        }


@dataclass(frozen=True)
class AggregationBucket:
    """Statistical summary of all readings falling into one calendar period."""
    period_key: str
    label: str
    start_date: datetime
    end_date: datetime
    fuel_average: float
    water_average: float
    per_generator_average: Dict[str, float] = field(default_factory=dict)
    alert_count: int = 0
    reading_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period_key,
            'label': self.label,
            'startDate': self.start_date.isoformat(),
            'endDate': self.end_date.isoformat(),
            'fuelAverage': self.fuel_average,
            'waterAverage': self.water_average,
            'generators': dict(self.per_generator_average),
            'alerts': self.alert_count,
            'readings': self.reading_count,
        }


@dataclass(frozen=True)
class TankFleetKPI:
    """Fleet figures for all tanks of one kind."""
    average: float
    trend: float
    direction: TrendDirection
    efficiency: float
    efficiency_raw: float
    days_remaining: float
    total_capacity: float
    entity_count: int
    critical_count: int
    low_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'average': self.average,
            'trend': self.trend,
            'direction': self.direction.value,
            'efficiency': self.efficiency,
            'efficiencyRaw': self.efficiency_raw,
            'daysRemaining': self.days_remaining,
            'totalCapacity': self.total_capacity,
            'count': self.entity_count,
            'critical': self.critical_count,
            'low': self.low_count,
        }


@dataclass(frozen=True)
class GeneratorFleetKPI:
    """Fleet figures for all generators."""
    performance: float
    total_capacity: float
    hours_remaining: float
    averages_by_generator: Dict[str, float]
    entity_count: int
    critical_count: int
    low_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'performance': self.performance,
            'totalCapacity': self.total_capacity,
            'hoursRemaining': self.hours_remaining,
            'averagesByGenerator': dict(self.averages_by_generator),
            'count': self.entity_count,
            'critical': self.critical_count,
            'low': self.low_count,
        }


@dataclass(frozen=True)
class AlertKPI:
    """Alert volume over the summary window."""
    average: float
    trend: float

    def to_dict(self) -> Dict[str, Any]:
        return {'average': self.average, 'trend': self.trend}


@dataclass(frozen=True)
class FleetKPISummary:
    """Fleet-wide roll-up of trends and predictions."""
    time_range_hours: int
    fuel: TankFleetKPI
    water: TankFleetKPI
    generator: GeneratorFleetKPI
    alerts: AlertKPI

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timeRangeHours': self.time_range_hours,
            'fuel': self.fuel.to_dict(),
            'water': self.water.to_dict(),
            'generator': self.generator.to_dict(),
            'alerts': self.alerts.to_dict(),
        }
