import logging.config
import os
from pathlib import Path
from typing import Dict, List

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.typing import Processor

from filesort.loggers.processors import (
    CallPrettifier,
    PathPrettifier,
    ZonedTimeStamper,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_TZ = "UTC"
DEFAULT_LOG_DIR = Path(".filesort/logs")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class LoggingManager:
    """
    Logging setup of the sort service.

    Log records always go to the console. When the service runs unattended,
    ``<NAME>_ENABLE_JSON_LOGGING=1`` adds a rotating JSON log file so that
    every sorted, deferred or rerouted file can be audited later.

    Environment variables, each prefixed with the upper-cased ``name``:

    - ``_LOG_LEVEL``: initial level, ``WARNING`` by default.
    - ``_LOG_TZ``: time zone of the timestamps, ``UTC`` by default.
    - ``_ENABLE_JSON_LOGGING``: ``1`` enables the JSON log file.
    - ``_LOG_DIR``: directory of the JSON log file, ``.filesort/logs`` by
      default.

    Parameters
    ----------
    name : str
        Name of the logger instance.
    base_dir : Path, optional
        Paths in log records are shown relative to this directory, defaults
        to the current working directory.

    Examples
    --------
    >>> logger = LoggingManager("filesort").configure("INFO")
    >>> logger.info("Placed file", copied=True)
    """

    def __init__(self, name: str, base_dir: Path | None = None) -> None:
        self.name = name
        self.base_dir = base_dir or Path.cwd()
        self.level = self.env_level
        self.tz = self._env("LOG_TZ", DEFAULT_LOG_TZ)
        self.enable_json_logging = self._env("ENABLE_JSON_LOGGING", "0") == "1"
        self.log_dir = Path(self._env("LOG_DIR", str(DEFAULT_LOG_DIR)))

    def _env(self, key: str, default: str) -> str:
        return os.environ.get(f"{self.name}_{key}".upper(), default)

    @property
    def env_level(self) -> str:
        return self._env("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()

    @property
    def log_file(self) -> Path:
        return self.log_dir / f"{self.name}.log"

    @property
    def pre_chain(self) -> List[Processor]:
        return [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            CallsiteParameterAdder(
                [
                    CallsiteParameter.MODULE,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            ),
            PathPrettifier(base_dir=self.base_dir),
            structlog.stdlib.ExtraAdder(),
            structlog.processors.StackInfoRenderer(),
        ]

    def _formatter(self, *processors: Processor) -> Dict:
        return {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                *processors[:-1],
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                processors[-1],
            ],
            "foreign_pre_chain": self.pre_chain,
        }

    def logging_config(self) -> Dict:
        """
        Build the ``logging.config.dictConfig`` schema for the current level.

        Creates the log directory when JSON logging is enabled.
        """
        formatters = {
            "console": self._formatter(
                ZonedTimeStamper(fmt="%H:%M:%S", tz=self.tz),
                CallPrettifier(concise=True),
                structlog.dev.ConsoleRenderer(
                    colors=True,
                    sort_keys=False,
                    exception_formatter=structlog.dev.RichTracebackFormatter(
                        width=-1,
                        show_locals=False,
                    ),
                ),
            ),
        }
        handlers: Dict[str, Dict] = {
            "console": {"class": "logging.StreamHandler", "formatter": "console"},
        }

        if self.enable_json_logging:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            formatters["json"] = self._formatter(
                ZonedTimeStamper(tz=self.tz),
                CallPrettifier(concise=False),
                structlog.processors.dict_tracebacks,
                structlog.processors.JSONRenderer(),
            )
            handlers["json"] = {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "json",
                "filename": str(self.log_file),
                "maxBytes": LOG_FILE_MAX_BYTES,
                "backupCount": LOG_FILE_BACKUPS,
                "encoding": "utf-8",
            }

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": {
                self.name: {
                    "handlers": list(handlers),
                    "level": self.level,
                    "propagate": False,
                },
            },
        }

    def configure(self, level: str | None = None) -> structlog.stdlib.BoundLogger:
        """
        Install the handlers and return the configured logger.

        Parameters
        ----------
        level : str, optional
            Log level, defaults to the level from the environment.

        Raises
        ------
        ValueError
            If ``level`` is not a valid log level.
        """
        level = (level or self.env_level).upper()
        if level not in LOG_LEVELS:
            msg = f"Invalid logging level: {level}"
            raise ValueError(msg)
        self.level = level

        logging.config.dictConfig(self.logging_config())
        structlog.configure(
            processors=[
                *self.pre_chain,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        return structlog.get_logger(self.name)
