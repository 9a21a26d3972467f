"""
pytest configuration and fixtures for Fleet Level Analytics tests.

This file contains shared fixtures and configuration used across all test modules.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from modules.analytics.records import (
    EntityInfo,
    EntityType,
    Reading,
    TankKind,
)
from modules.database.models import Base, Generator, HistoricalReading, Tank
from modules.database.queries import SqlReadingStore
from utils.cache import CacheManager, MemoryCache
from utils.config import AnalyticsThresholds


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def fixed_now():
    """Reference 'now' shared by store, service and reading fixtures."""
    return datetime(2024, 3, 25, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_db_engine(tmp_path):
    """Create a temporary SQLite database engine for testing.

    A file database is used instead of ``:memory:`` so that worker threads of
    the concurrent fetch see the same data through their own connections.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'fleet.db'}",
        echo=False,
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def test_session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture(scope="function")
def test_db_session(test_session_factory):
    """Create a database session for testing."""
    session = test_session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def sample_fleet(test_db_session):
    """One fuel tank, one water tank and two generators."""
    entities = [
        Tank(id='fuel-1', name='Main Fuel', tank_type='fuel', capacity=1000.0, current_level=50.0),
        Tank(id='water-1', name='Roof Water', tank_type='water', capacity=2000.0, current_level=80.0),
        Generator(id='gen-1', name='Generator A', capacity=500.0, current_level=15.0),
        Generator(id='gen-2', name='Generator B', capacity=300.0, current_level=90.0),
    ]
    test_db_session.add_all(entities)
    test_db_session.commit()
    return entities


@pytest.fixture(scope="function")
def sample_history(test_db_session, sample_fleet, fixed_now):
    """Twelve hourly readings per entity ending at ``fixed_now``.

    The fuel tank drains 1% per hour from 61 to 50, the water tank is flat at
    80, gen-1 drains 2% per hour from 37 to 15 and gen-2 is flat at 90.
    """
    series = {
        ('tank', 'fuel-1'): [61.0 - i for i in range(12)],
        ('tank', 'water-1'): [80.0] * 12,
        ('generator', 'gen-1'): [37.0 - 2 * i for i in range(12)],
        ('generator', 'gen-2'): [90.0] * 12,
    }
    base = fixed_now.replace(tzinfo=None) - timedelta(hours=11)
    for (entity_type, entity_id), levels in series.items():
        for i, level in enumerate(levels):
            test_db_session.add(HistoricalReading(
                entity_type=entity_type,
                entity_id=entity_id,
                level=level,
                timestamp=base + timedelta(hours=i),
            ))
    test_db_session.commit()
    return series


@pytest.fixture(scope="function")
def reading_store(test_session_factory):
    """SqlReadingStore bound to the test database."""
    return SqlReadingStore(test_session_factory)


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def make_readings(fixed_now):
    """Factory building an hourly (or custom step) reading series."""
    def factory(
        levels: Sequence[float],
        entity_id: str = 'fuel-1',
        entity_type: EntityType = EntityType.TANK,
        tank_kind: Optional[TankKind] = TankKind.FUEL,
        start: Optional[datetime] = None,
        step: timedelta = timedelta(hours=1),
    ) -> List[Reading]:
        start = start or fixed_now - step * (len(levels) - 1)
        if entity_type is EntityType.GENERATOR:
            tank_kind = None
        return [
            Reading(
                entity_type=entity_type,
                entity_id=entity_id,
                level=level,
                timestamp=start + step * i,
                tank_kind=tank_kind,
            )
            for i, level in enumerate(levels)
        ]
    return factory


@pytest.fixture
def thresholds():
    """Default alert thresholds (low 20, critical 10)."""
    return AnalyticsThresholds(low_alert_threshold=20.0, critical_alert_threshold=10.0)


@pytest.fixture
def fleet_entities():
    """Entity metadata for a small mixed fleet."""
    return [
        EntityInfo('fuel-1', EntityType.TANK, 1000.0, 50.0, 'Main Fuel', TankKind.FUEL),
        EntityInfo('fuel-2', EntityType.TANK, 1000.0, 10.0, 'Spare Fuel', TankKind.FUEL),
        EntityInfo('water-1', EntityType.TANK, 2000.0, 80.0, 'Roof Water', TankKind.WATER),
        EntityInfo('gen-1', EntityType.GENERATOR, 500.0, 15.0, 'Generator A'),
        EntityInfo('gen-2', EntityType.GENERATOR, 300.0, 90.0, 'Generator B'),
    ]


# ============================================================================
# Cache Fixtures
# ============================================================================

class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def memory_cache_manager(fake_clock):
    """Isolated cache manager over an in-memory backend with a fake clock."""
    return CacheManager(MemoryCache(max_size=100, clock=fake_clock), default_ttl=300)


# ============================================================================
# Test Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
