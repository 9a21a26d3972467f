"""
Logging configuration for the Fleet Level Analytics application.

Uses loguru for structured logging with file rotation, different log levels
for development/production, and standardized log formatting across the application.

Example:
    >>> from utils.logging_config import setup_logging, get_logger
    >>>
    >>> # Setup logging (call once at application startup)
    >>> setup_logging()
    >>>
    >>> # Get logger for specific module
    >>> logger = get_logger("modules.analytics.service")
    >>> logger.info("Fleet summary computed", tanks=12, generators=4)
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from loguru import logger

from .config import settings


# Global logger configuration state
_logging_configured = False


class InterceptHandler(logging.Handler):
    """Intercept standard logging records and route to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a logging record to loguru."""
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    enable_file_logging: bool = True,
    enable_console_logging: bool = True,
    enable_json_logging: bool = False,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> None:
    """
    Configure loguru logging for the entire application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (defaults to settings.log_file)
        enable_file_logging: Enable logging to file
        enable_console_logging: Enable logging to console
        enable_json_logging: Use JSON format for structured logging
        max_bytes: Maximum log file size in bytes (defaults to settings.log_max_bytes)
        backup_count: Number of backup files to keep (defaults to settings.log_backup_count)
    """
    global _logging_configured

    if _logging_configured:
        return

    log_level = log_level or settings.log_level
    log_file = log_file or settings.log_file
    rotation = max_bytes or settings.log_max_bytes
    retention = backup_count or settings.log_backup_count

    logger.remove()

    console_format, file_format = _formats(enable_json_logging)

    if enable_console_logging:
        logger.add(
            sys.stderr,
            format=console_format,
            level=log_level,
            colorize=not enable_json_logging,
            backtrace=settings.debug_mode,
            diagnose=settings.debug_mode,
            enqueue=True,  # Thread-safe logging
        )

    if enable_file_logging and log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        _add_file_sink(log_path, file_format, log_level, rotation, retention)
        # Errors are duplicated into <stem>_errors.log with full tracebacks
        _add_file_sink(
            log_path.parent / f"{log_path.stem}_errors.log",
            file_format, "ERROR", rotation, retention, backtrace=True,
        )

    # Route stdlib loggers (analytics modules, SQLAlchemy) through loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    _suppress_noisy_loggers()

    logger.info(
        "Logging configured",
        level=log_level,
        file_logging=enable_file_logging,
        console_logging=enable_console_logging,
        json_format=enable_json_logging,
        log_file=str(log_file) if log_file else None,
    )

    _logging_configured = True


def _formats(enable_json_logging: bool) -> Tuple[Any, Any]:
    """Console and file formats: JSON serializer or human readable templates."""
    if enable_json_logging:
        return _json_format, _json_format

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    file_format = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"
    return console_format, file_format


def _add_file_sink(
    path: Path,
    log_format: Any,
    level: str,
    rotation: int,
    retention: int,
    backtrace: Optional[bool] = None,
) -> None:
    logger.add(
        str(path),
        format=log_format,
        level=level,
        rotation=rotation,
        retention=retention,
        compression="gz",
        backtrace=settings.debug_mode if backtrace is None else backtrace,
        diagnose=settings.debug_mode,
        enqueue=True,
    )


def _json_format(record: Dict[str, Any]) -> str:
    """Format log record as JSON."""
    log_entry = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
        "message": record["message"],
    }

    if record.get("extra"):
        log_entry.update(record["extra"])

    if record.get("exception"):
        log_entry["exception"] = str(record["exception"])

    # loguru treats the returned string as a template, so braces are escaped
    serialized = json.dumps(log_entry, default=str)
    return serialized.replace("{", "{{").replace("}", "}}") + "\n"


def _suppress_noisy_loggers():
    """Suppress logs from noisy third-party libraries."""
    noisy_loggers = [
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "redis",
        "asyncio",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None):
    """
    Get a logger instance for the specified module/component.

    Args:
        name: Logger name (typically __name__ or module path)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


def log_performance(func_name: str, duration_ms: float, **kwargs) -> None:
    """
    Log performance metrics for a function.

    Args:
        func_name: Name of the function
        duration_ms: Execution time in milliseconds
        **kwargs: Additional performance metrics
    """
    logger.info(
        "Performance metric",
        function=func_name,
        duration_ms=round(duration_ms, 2),
        **kwargs,
    )


def log_analytics_run(
    operation: str,
    entity_count: int,
    duration_ms: float,
    cached: bool = False,
    **kwargs,
) -> None:
    """
    Log the outcome of one analytics request.

    Args:
        operation: Service operation name (bulk, aggregated_kpis, fleet_summary, ...)
        entity_count: Number of tanks and generators covered by the request
        duration_ms: Wall time in milliseconds
        cached: Whether the response came from the cache
        **kwargs: Additional request parameters
    """
    logger.info(
        "Analytics request completed",
        operation=operation,
        entity_count=entity_count,
        duration_ms=round(duration_ms, 2),
        cached=cached,
        **kwargs,
    )


def log_cache_operation(
    operation: str,
    key: str,
    hit: Optional[bool] = None,
    ttl_seconds: Optional[int] = None,
    size_bytes: Optional[int] = None,
) -> None:
    """
    Log cache operations.

    Args:
        operation: Cache operation (GET, SET, DELETE, INVALIDATE)
        key: Cache key
        hit: Whether it was a cache hit (for GET operations)
        ttl_seconds: TTL for cached item (for SET operations)
        size_bytes: Size of cached data
    """
    log_data = {
        "operation": f"cache_{operation.lower()}",
        "key": key,
    }

    if hit is not None:
        log_data["hit"] = hit
    if ttl_seconds:
        log_data["ttl_seconds"] = ttl_seconds
    if size_bytes:
        log_data["size_bytes"] = size_bytes

    logger.debug("Cache operation", **log_data)
