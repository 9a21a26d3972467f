"""
Utility modules for the Fleet Level Analytics application.

This package provides common utilities including:
- Configuration management
- Logging setup and configuration
- Caching utilities with Redis integration

Example:
    >>> from utils.config import settings
    >>> from utils.logging_config import setup_logging
    >>> from utils.cache import cache_manager, make_cache_key

    >>> # Setup logging
    >>> setup_logging()

    >>> # Access configuration
    >>> thresholds = settings.thresholds()

    >>> # Memoize an expensive computation
    >>> key = make_cache_key("summary", days=30)
    >>> result = cache_manager.get_or_compute(key, compute_summary)
"""

from .config import settings, AnalyticsThresholds
from .logging_config import setup_logging, get_logger
from .cache import cache_manager, cached, invalidate_cache, make_cache_key

__all__ = [
    "settings",
    "AnalyticsThresholds",
    "setup_logging",
    "get_logger",
    "cache_manager",
    "cached",
    "invalidate_cache",
    "make_cache_key",
]

__version__ = "1.0.0"
