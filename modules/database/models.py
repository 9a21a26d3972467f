"""
SQLAlchemy models for the Fleet Level Analytics database.

Defines tables for:
- Tanks: Fuel and water tanks with capacity and current level
- Generators: Generators with fuel capacity and current level
- HistoricalReadings: Timestamped level readings of tanks and generators
- Alerts: Level alerts raised when a reading crosses a threshold
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    create_engine, Column, Integer, String, Float, DateTime,
    Boolean, Text, Index
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.engine import Engine

from utils.config import settings
from utils.logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the storage convention of every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Tank(Base):
    """
    Table for fuel and water tanks.
    """
    __tablename__ = 'tanks'

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    tank_type = Column(String(20), nullable=False)  # 'fuel' or 'water'
    capacity = Column(Float, nullable=False)        # Liters
    current_level = Column(Float, nullable=False, default=0.0)  # Percent of capacity
    location = Column(String(200))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_tank_type', 'tank_type'),
    )

    def __repr__(self):
        return f"<Tank(id='{self.id}', type='{self.tank_type}', level={self.current_level})>"


class Generator(Base):
    """
    Table for generators and their fuel levels.
    """
    __tablename__ = 'generators'

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    capacity = Column(Float, nullable=False)        # Fuel capacity in liters
    current_level = Column(Float, nullable=False, default=0.0)  # Percent of capacity
    location = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_generator_active', 'is_active'),
    )

    def __repr__(self):
        return f"<Generator(id='{self.id}', level={self.current_level}, active={self.is_active})>"


class HistoricalReading(Base):
    """
    Table for timestamped level readings of tanks and generators.
    """
    __tablename__ = 'historical_readings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False)  # 'tank' or 'generator'
    entity_id = Column(String(50), nullable=False)
    level = Column(Float, nullable=False)             # Percent of capacity
    timestamp = Column(DateTime, nullable=False, default=utcnow)  # Naive UTC
    recorded_by = Column(String(100), default='system')

    __table_args__ = (
        Index('idx_reading_timestamp', 'timestamp'),
        Index('idx_reading_entity_timestamp', 'entity_type', 'entity_id', 'timestamp'),
    )

    def __repr__(self):
        return (f"<HistoricalReading(id={self.id}, {self.entity_type}='{self.entity_id}', "
                f"level={self.level}, timestamp={self.timestamp})>")


class Alert(Base):
    """
    Table for level alerts.
    """
    __tablename__ = 'alerts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20))
    entity_id = Column(String(50))
    alert_type = Column(String(20), nullable=False, default='level')
    severity = Column(String(20), nullable=False)  # 'low' or 'critical'
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    value = Column(Float)
    threshold = Column(Float)
    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)  # Naive UTC

    __table_args__ = (
        Index('idx_alert_created_at', 'created_at'),
        Index('idx_alert_entity', 'entity_type', 'entity_id'),
        Index('idx_alert_open', 'entity_id', 'severity', 'acknowledged'),
    )

    def __repr__(self):
        return (f"<Alert(id={self.id}, entity='{self.entity_id}', severity='{self.severity}', "
                f"acknowledged={self.acknowledged})>")


def get_engine(database_url: Optional[str] = None) -> Engine:
    """Get or create database engine."""
    global _engine
    if _engine is None:
        url = database_url or settings.database_url
        db_path = settings.get_database_path() if database_url is None else None
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)

        _engine = create_engine(
            url,
            echo=settings.database_echo,
            connect_args={'check_same_thread': False} if url.startswith('sqlite') else {}
        )
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _SessionLocal


def get_session() -> Session:
    """Get a new database session."""
    SessionLocal = get_session_factory()
    return SessionLocal()


@contextmanager
def session_scope(session_factory: Optional[sessionmaker] = None):
    """Provide a transactional scope around a series of operations."""
    session = session_factory() if session_factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(engine: Optional[Engine] = None):
    """Create all database tables."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully.")


def init_database():
    """Initialize database with tables."""
    logger.info("Initializing Fleet Level Analytics database...")
    create_tables()

    with session_scope() as session:
        tank_count = session.query(Tank).count()
        generator_count = session.query(Generator).count()
        logger.info(f"Database initialized. Tanks: {tank_count}, generators: {generator_count}")


def get_database_stats(session_factory: Optional[sessionmaker] = None):
    """Get basic database statistics."""
    with session_scope(session_factory) as session:
        stats = {
            'total_tanks': session.query(Tank).count(),
            'fuel_tanks': session.query(Tank).filter(Tank.tank_type == 'fuel').count(),
            'water_tanks': session.query(Tank).filter(Tank.tank_type == 'water').count(),
            'total_generators': session.query(Generator).count(),
            'active_generators': session.query(Generator).filter(Generator.is_active == True).count(),
            'total_readings': session.query(HistoricalReading).count(),
            'open_alerts': session.query(Alert).filter(Alert.acknowledged == False).count(),
        }

    return stats


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Database management')
    parser.add_argument('--init', action='store_true', help='Initialize database')
    parser.add_argument('--stats', action='store_true', help='Show database statistics')

    args = parser.parse_args()

    if args.init:
        init_database()
    elif args.stats:
        stats = get_database_stats()
        print("\nDatabase Statistics:")
        for key, value in stats.items():
            print(f"  {key.replace('_', ' ').title()}: {value}")
    else:
        print("Use --init or --stats")
