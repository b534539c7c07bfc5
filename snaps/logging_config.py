"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger import jsonlogger

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# File name -> minimum level written to it
LOG_FILES = {
    "app.log": logging.DEBUG,
    "error.log": logging.ERROR,
}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds timestamp, level, logger and source location to every record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"
        if record.funcName:
            log_record['function'] = record.funcName


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: str | Path | None = None, level: str = "INFO") -> logging.Logger:
    """Configure the root logger for a running server.

    Called from ``snaps.main.run``, never at import time, so importing the
    package (tests, alembic) does not create log files.

    Args:
        base_dir: Directory to place the logs/ folder in, defaults to the working directory
        level: Root log level name
    """
    logs_dir = Path(base_dir or Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    json_formatter = CustomJsonFormatter(JSON_FORMAT)
    for filename, file_level in LOG_FILES.items():
        root_logger.addHandler(_file_handler(logs_dir / filename, file_level, json_formatter))

    return root_logger
