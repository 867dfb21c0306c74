"""structlog on top of stdlib logging, emitting JSON lines per harvest."""

from __future__ import annotations

import logging
import logging.config
from collections import deque
from pathlib import Path

import structlog

from .config.loader import harvester_home

ROOT_LOGGER = "ipd_harvester"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Log directory the stdlib handlers currently write to
_configured_dir: Path | None = None


def log_dir() -> Path:
    return harvester_home() / "logs"


def database_log_path(code: str) -> Path:
    return log_dir() / "databases" / f"{code}.log"


def _enable_debug() -> None:
    # Only ever raised: later non-verbose calls must not undo --verbose
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    for handler in root.handlers:
        if handler.name == "console":
            handler.setLevel(logging.DEBUG)


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install console, ``harvester.log`` and ``error.log`` handlers.

    Handlers are rebuilt only when the harvester home moves, so repeated calls
    from the CLI and the orchestrator are cheap.
    """

    global _configured_dir
    target = log_dir()
    if _configured_dir == target:
        if verbose:
            _enable_debug()
        return structlog.get_logger(ROOT_LOGGER)

    target.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT}
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "level": "WARNING", "formatter": "json"},
                "harvester_file": {
                    "class": "logging.FileHandler",
                    "level": "DEBUG",
                    "filename": str(target / "harvester.log"),
                    "encoding": "utf-8",
                    "formatter": "json",
                },
                "error_file": {
                    "class": "logging.FileHandler",
                    "level": "ERROR",
                    "filename": str(target / "error.log"),
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "loggers": {
                ROOT_LOGGER: {
                    "handlers": ["console", "harvester_file", "error_file"],
                    "level": "INFO",
                    "propagate": False,
                },
            },
        }
    )
    if verbose:
        _enable_debug()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    _configured_dir = target
    return structlog.get_logger(ROOT_LOGGER)


def database_logger(code: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``database=code`` that also writes ``databases/<code>.log``."""

    configure_logging(verbose)
    path = database_log_path(code)
    path.parent.mkdir(parents=True, exist_ok=True)

    py_logger = logging.getLogger(f"{ROOT_LOGGER}.database.{code}")
    for handler in list(py_logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != str(path):
            # Left over from a previous harvester home
            py_logger.removeHandler(handler)
            handler.close()
    if not py_logger.handlers:
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.getLogger(ROOT_LOGGER).handlers[0].formatter)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(py_logger.name).bind(database=code)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="replace") as stream:
        return list(deque(stream, maxlen=line_count))


def available_database_logs() -> list[Path]:
    return sorted(log_dir().joinpath("databases").glob("*.log"))


__all__ = [
    "available_database_logs",
    "configure_logging",
    "database_log_path",
    "database_logger",
    "log_dir",
    "tail_log",
]
