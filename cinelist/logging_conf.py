"""structlog on top of stdlib handlers writing JSON lines.

Layout under ``$CINELIST_HOME/logs``:

- ``pipeline.log``: every INFO+ event of the ``cinelist`` logger tree
- ``error.log``: ERROR+ only
- ``sources/<name>.log``: events bound to one cinema source
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Iterable

import structlog

APP_LOGGER = "cinelist"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False

_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.add_log_level,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def log_dir() -> Path:
    home = os.environ.get("CINELIST_HOME")
    root = Path(home).expanduser().resolve() if home else Path(__file__).resolve().parents[1]
    return root / "logs"


def pipeline_log_path() -> Path:
    return log_dir() / "pipeline.log"


def error_log_path() -> Path:
    return log_dir() / "error.log"


def source_log_path(source_name: str) -> Path:
    return log_dir() / "sources" / f"{source_name}.log"


def _dict_config(level: str) -> dict[str, Any]:
    def file_handler(path: Path, handler_level: str) -> dict[str, Any]:
        return {
            "class": "logging.FileHandler",
            "level": handler_level,
            "filename": str(path),
            "encoding": "utf-8",
            "formatter": "json",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "pipeline_file": file_handler(pipeline_log_path(), "INFO"),
            "error_file": file_handler(error_log_path(), "ERROR"),
        },
        "loggers": {
            APP_LOGGER: {
                "handlers": ["console", "pipeline_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Set up handlers once per process and return the application logger."""

    global _configured
    (log_dir() / "sources").mkdir(parents=True, exist_ok=True)
    if not _configured:
        logging.config.dictConfig(_dict_config("DEBUG" if verbose else "INFO"))
        structlog.configure(
            processors=_PROCESSORS,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger(APP_LOGGER)


def enable_debug() -> None:
    """Lower the application logger and its console handler to DEBUG."""

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(logging.DEBUG)
    for handler in app_logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.DEBUG)


def source_logger(source_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``source=<name>`` that also writes ``sources/<name>.log``."""

    configure_logging(verbose)
    path = source_log_path(source_name)
    name = f"{APP_LOGGER}.source.{source_name}"
    py_logger = logging.getLogger(name)
    attached = {getattr(handler, "baseFilename", None) for handler in py_logger.handlers}
    if str(path) not in attached:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        parent_handlers = logging.getLogger(APP_LOGGER).handlers
        if parent_handlers:
            handler.setFormatter(parent_handlers[0].formatter)
        py_logger.addHandler(handler)
    return structlog.get_logger(name).bind(source=source_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return stream.readlines()[-line_count:]


def available_source_logs() -> Iterable[Path]:
    return sorted((log_dir() / "sources").glob("*.log"))


__all__ = [
    "available_source_logs",
    "configure_logging",
    "enable_debug",
    "error_log_path",
    "log_dir",
    "pipeline_log_path",
    "source_log_path",
    "source_logger",
    "tail_log",
]
