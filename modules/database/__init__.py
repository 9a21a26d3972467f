"""
Fleet Level Analytics Database Module

This module provides database models and the reading store for the Fleet Level Analytics application.
Includes SQLAlchemy models for tanks, generators, historical readings and alerts.
"""

from .models import (
    Base,
    Tank,
    Generator,
    HistoricalReading,
    Alert,
    init_database,
    get_session,
    session_scope,
    create_tables,
    get_engine
)

from .queries import (
    EntityNotFoundError,
    ReadingStore,
    SqlReadingStore,
    fetch_readings_concurrently
)

__all__ = [
    # Models
    'Base',
    'Tank',
    'Generator',
    'HistoricalReading',
    'Alert',
    'init_database',
    'get_session',
    'session_scope',
    'create_tables',
    'get_engine',

    # Queries
    'EntityNotFoundError',
    'ReadingStore',
    'SqlReadingStore',
    'fetch_readings_concurrently'
]
