"""
Reading store for Fleet Level Analytics.

Provides the store contract the analytics engine reads through and its
SQLAlchemy implementation:
- Fetching readings per entity and per time range
- Fetching tank and generator metadata
- Fetching alerts by time range
- Recording new readings with level alert bookkeeping
- Fanning independent reading fetches out over a thread pool
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import sessionmaker

from modules.analytics.alerts import build_level_alert
from modules.analytics.records import AlertEvent, EntityInfo, EntityType, Reading, TankKind
from utils.config import AnalyticsThresholds, settings
from utils.logging_config import get_logger

from .models import Alert, Generator, HistoricalReading, Tank, session_scope

logger = get_logger(__name__)

EntityKey = Tuple[EntityType, str]


class EntityNotFoundError(LookupError):
    """Raised when a single-entity request names an unknown tank or generator."""

    def __init__(self, entity_type: EntityType, entity_id: str):
        super().__init__(f"{entity_type.value} '{entity_id}' not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


def to_storage_time(timestamp: datetime) -> datetime:
    """Naive UTC datetime for querying and storing; naive input is taken as UTC."""
    if timestamp.tzinfo is not None:
        return timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp


def from_storage_time(timestamp: datetime) -> datetime:
    """Tag a stored naive UTC datetime as UTC."""
    return timestamp.replace(tzinfo=timezone.utc)


class ReadingStore(ABC):
    """Read access to readings, entity metadata and alerts."""

    @abstractmethod
    def readings(self, entity_type: EntityType, entity_id: str, since: datetime) -> List[Reading]:
        """Readings of one entity at or after ``since``, oldest first."""
        pass

    @abstractmethod
    def readings_between(
        self,
        entity_type: EntityType,
        start: datetime,
        end: datetime,
        entity_ids: Optional[Sequence[str]] = None,
    ) -> List[Reading]:
        """Readings of an entity type inside ``[start, end]``; ``None`` ids means every entity."""
        pass

    @abstractmethod
    def get_entity(self, entity_type: EntityType, entity_id: str) -> EntityInfo:
        """Metadata of one entity; raises EntityNotFoundError when unknown."""
        pass

    @abstractmethod
    def get_entities(
        self,
        entity_type: EntityType,
        entity_ids: Optional[Sequence[str]] = None,
    ) -> List[EntityInfo]:
        """Metadata of the named entities, or every entity of the type when ``entity_ids`` is None."""
        pass

    @abstractmethod
    def alerts_between(self, start: datetime, end: datetime) -> List[AlertEvent]:
        """Alerts created inside ``[start, end]``."""
        pass


class SqlReadingStore(ReadingStore):
    """ReadingStore backed by the SQLAlchemy models."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize the store.

        Args:
            session_factory: Session factory to use (the global one when omitted)
        """
        self.session_factory = session_factory

    def _tank_kinds(self, session, tank_ids: Iterable[str]) -> Dict[str, TankKind]:
        rows = session.query(Tank.id, Tank.tank_type).filter(Tank.id.in_(list(tank_ids))).all()
        return {tank_id: TankKind(tank_type) for tank_id, tank_type in rows}

    def _to_readings(self, session, entity_type: EntityType, rows: List[HistoricalReading]) -> List[Reading]:
        kinds = {}
        if entity_type is EntityType.TANK:
            kinds = self._tank_kinds(session, {row.entity_id for row in rows})

        return [
            Reading(
                entity_type=entity_type,
                entity_id=row.entity_id,
                level=row.level,
                timestamp=from_storage_time(row.timestamp),
                recorded_by=row.recorded_by or 'system',
                tank_kind=kinds.get(row.entity_id),
            )
            for row in rows
        ]

    def readings(self, entity_type: EntityType, entity_id: str, since: datetime) -> List[Reading]:
        with session_scope(self.session_factory) as session:
            rows = session.query(HistoricalReading).filter(
                HistoricalReading.entity_type == entity_type.value,
                HistoricalReading.entity_id == entity_id,
                HistoricalReading.timestamp >= to_storage_time(since),
            ).order_by(HistoricalReading.timestamp.asc()).all()

            return self._to_readings(session, entity_type, rows)

    def readings_between(
        self,
        entity_type: EntityType,
        start: datetime,
        end: datetime,
        entity_ids: Optional[Sequence[str]] = None,
    ) -> List[Reading]:
        with session_scope(self.session_factory) as session:
            query = session.query(HistoricalReading).filter(
                HistoricalReading.entity_type == entity_type.value,
                HistoricalReading.timestamp >= to_storage_time(start),
                HistoricalReading.timestamp <= to_storage_time(end),
            )
            if entity_ids is not None:
                query = query.filter(HistoricalReading.entity_id.in_(list(entity_ids)))

            rows = query.order_by(HistoricalReading.timestamp.asc()).all()
            return self._to_readings(session, entity_type, rows)

    @staticmethod
    def _tank_info(tank: Tank) -> EntityInfo:
        return EntityInfo(
            entity_id=tank.id,
            entity_type=EntityType.TANK,
            capacity=tank.capacity,
            current_level=tank.current_level,
            name=tank.name,
            tank_kind=TankKind(tank.tank_type),
        )

    @staticmethod
    def _generator_info(generator: Generator) -> EntityInfo:
        return EntityInfo(
            entity_id=generator.id,
            entity_type=EntityType.GENERATOR,
            capacity=generator.capacity,
            current_level=generator.current_level,
            name=generator.name,
        )

    def get_entity(self, entity_type: EntityType, entity_id: str) -> EntityInfo:
        entities = self.get_entities(entity_type, [entity_id])
        if not entities:
            raise EntityNotFoundError(entity_type, entity_id)
        return entities[0]

    def get_entities(
        self,
        entity_type: EntityType,
        entity_ids: Optional[Sequence[str]] = None,
    ) -> List[EntityInfo]:
        model = Tank if entity_type is EntityType.TANK else Generator
        to_info = self._tank_info if entity_type is EntityType.TANK else self._generator_info

        with session_scope(self.session_factory) as session:
            query = session.query(model)
            if entity_ids is not None:
                query = query.filter(model.id.in_(list(entity_ids)))
            return [to_info(row) for row in query.order_by(model.id).all()]

    def alerts_between(self, start: datetime, end: datetime) -> List[AlertEvent]:
        with session_scope(self.session_factory) as session:
            rows = session.query(Alert).filter(
                Alert.created_at >= to_storage_time(start),
                Alert.created_at <= to_storage_time(end),
            ).order_by(Alert.created_at.asc()).all()

            return [
                AlertEvent(
                    alert_id=str(row.id),
                    timestamp=from_storage_time(row.created_at),
                    severity=row.severity,
                    entity_id=row.entity_id,
                    entity_type=EntityType(row.entity_type) if row.entity_type else None,
                )
                for row in rows
            ]

    def record_reading(
        self,
        entity_type: EntityType,
        entity_id: str,
        level: float,
        timestamp: Optional[datetime] = None,
        recorded_by: str = 'system',
        thresholds: Optional[AnalyticsThresholds] = None,
    ) -> Reading:
        """
        Insert a reading, update the entity's current level and open a level alert.

        A new alert is only created when no unacknowledged alert of the same
        severity is already open for the entity.

        Args:
            entity_type: Tank or generator
            entity_id: Entity identifier
            level: Level in percent of capacity
            timestamp: Reading time (defaults to now)
            recorded_by: Who recorded the reading
            thresholds: Alert thresholds (from settings when omitted)

        Returns:
            The stored reading
        """
        if not 0.0 <= level <= 100.0:
            raise ValueError(f"Level must be between 0 and 100, got {level}")

        thresholds = thresholds or settings.thresholds()
        stored_at = to_storage_time(timestamp) if timestamp else to_storage_time(datetime.now(timezone.utc))
        model = Tank if entity_type is EntityType.TANK else Generator

        with session_scope(self.session_factory) as session:
            entity = session.get(model, entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_type, entity_id)

            session.add(HistoricalReading(
                entity_type=entity_type.value,
                entity_id=entity_id,
                level=level,
                timestamp=stored_at,
                recorded_by=recorded_by,
            ))
            entity.current_level = level

            alert = build_level_alert(entity_type, entity_id, level, thresholds, name=entity.name)
            if alert is not None:
                open_alert = session.query(Alert).filter(
                    Alert.entity_id == entity_id,
                    Alert.entity_type == entity_type.value,
                    Alert.severity == alert.severity.value,
                    Alert.acknowledged == False,
                ).first()

                if open_alert is None:
                    session.add(Alert(
                        entity_type=entity_type.value,
                        entity_id=entity_id,
                        alert_type=alert.alert_type.value,
                        severity=alert.severity.value,
                        title=alert.title,
                        message=alert.message,
                        value=alert.value,
                        threshold=alert.threshold,
                        created_at=stored_at,
                    ))
                    logger.warning(f"ALERT: {alert.title} - {alert.message}")

            tank_kind = TankKind(entity.tank_type) if entity_type is EntityType.TANK else None

        return Reading(
            entity_type=entity_type,
            entity_id=entity_id,
            level=level,
            timestamp=from_storage_time(stored_at),
            recorded_by=recorded_by,
            tank_kind=tank_kind,
        )


def fetch_readings_concurrently(
    store: ReadingStore,
    requests: Iterable[EntityKey],
    since: datetime,
    max_workers: int = 8,
) -> Dict[EntityKey, List[Reading]]:
    """
    Fetch readings for many entities in parallel.

    Results are keyed by ``(entity_type, entity_id)`` so completion order does
    not matter. The first fetch error propagates to the caller.

    Args:
        store: Reading store to query
        requests: Entities to fetch
        since: Start of the lookback window
        max_workers: Thread pool size

    Returns:
        Readings per entity
    """
    keys = list(dict.fromkeys(requests))
    if not keys:
        return {}

    results: Dict[EntityKey, List[Reading]] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(keys))) as executor:
        future_to_key = {
            executor.submit(store.readings, entity_type, entity_id, since): (entity_type, entity_id)
            for entity_type, entity_id in keys
        }

        for future in as_completed(future_to_key):
            key = future_to_key[future]
            try:
                results[key] = future.result()
            except Exception as e:
                logger.error(f"Error fetching readings for {key[0].value} {key[1]}: {e}")
                raise

    return results
