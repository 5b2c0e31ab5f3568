import structlog

from filesort.loggers.logging_config import LoggingManager


def get_logger(
    name: str, level: str | None = None
) -> structlog.stdlib.BoundLogger:
    """
    Configure logging for ``name`` and return its logger.

    Parameters
    ----------
    name : str
        Name of the logger instance.
    level : str, optional
        Log level, defaults to ``<NAME>_LOG_LEVEL`` or ``WARNING``.
    """
    return LoggingManager(name).configure(level)


logger = get_logger("filesort")

__all__ = ["get_logger", "logger"]
