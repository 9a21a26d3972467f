"""
Level Alert Classification for Fleet Level Analytics

Provides alerting helpers that:
- Classify a tank or generator level against the low / critical thresholds
- Build level alerts with a readable title and message
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from utils.config import AnalyticsThresholds

from .records import EntityType

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """Alert severity levels."""
    LOW = "low"
    CRITICAL = "critical"


class AlertType(Enum):
    """Types of alerts."""
    LEVEL = "level"


@dataclass
class LevelAlert:
    """Container for level alert information."""
    entity_type: EntityType
    entity_id: str
    severity: AlertSeverity
    title: str
    message: str
    timestamp: datetime
    value: float
    threshold: float
    alert_type: AlertType = AlertType.LEVEL
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert alert to dictionary."""
        return {
            'alertType': self.alert_type.value,
            'entityType': self.entity_type.value,
            'entityId': self.entity_id,
            'severity': self.severity.value,
            'title': self.title,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'value': self.value,
            'threshold': self.threshold,
            'metadata': self.metadata,
        }


def classify_level(level: float, thresholds: AnalyticsThresholds) -> Optional[AlertSeverity]:
    """
    Classify a level percentage against the alert thresholds.

    Both boundaries are inclusive: a level equal to the critical threshold
    is critical, a level equal to the low threshold is low.

    Returns:
        AlertSeverity.CRITICAL, AlertSeverity.LOW, or None when the level is healthy
    """
    if level <= thresholds.critical_alert_threshold:
        return AlertSeverity.CRITICAL
    if level <= thresholds.low_alert_threshold:
        return AlertSeverity.LOW
    return None


def build_level_alert(
    entity_type: EntityType,
    entity_id: str,
    level: float,
    thresholds: AnalyticsThresholds,
    timestamp: Optional[datetime] = None,
    name: str = "",
) -> Optional[LevelAlert]:
    """
    Build a level alert for an entity when its level crosses a threshold.

    Returns:
        LevelAlert, or None when the level is above the low threshold
    """
    severity = classify_level(level, thresholds)
    if severity is None:
        return None

    label = name or entity_id
    kind = "Tank" if entity_type is EntityType.TANK else "Generator"
    if severity is AlertSeverity.CRITICAL:
        threshold = thresholds.critical_alert_threshold
        title = f"Critical: {kind} Level"
    else:
        threshold = thresholds.low_alert_threshold
        title = f"Low {kind} Level"

    return LevelAlert(
        entity_type=entity_type,
        entity_id=entity_id,
        severity=severity,
        title=title,
        message=f"{kind} {label} is at {level:.1f}% (threshold: {threshold:.0f}%)",
        timestamp=timestamp or datetime.now(),
        value=level,
        threshold=threshold,
        metadata={'name': name} if name else {},
    )
