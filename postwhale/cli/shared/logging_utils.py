"""Per-command loguru routing for the CLI."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from postwhale.utils.helpers import ensure_dir, get_data_path

_STDERR_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"

# command name -> file sink id
_file_sinks: dict[str, int] = {}


def command_log_path(name: str) -> Path:
    return get_data_path() / "logs" / f"{name}.log"


def configure_command_logging(name: str, *, debug: bool, logs: bool, level: str = "INFO") -> Path | None:
    """
    Route postwhale logs for one CLI command.

    --debug replaces every sink with a DEBUG stderr sink plus the command's log file;
    --logs only adds the file (10 MB rotation, 14 days retention); otherwise the
    package is silenced. Returns the log file path when one is written.
    """
    if not (debug or logs):
        logger.disable("postwhale")
        return None
    if debug:
        logger.remove()
        _file_sinks.clear()
        logger.add(sys.stderr, level="DEBUG", format=_STDERR_FORMAT)
        level = "DEBUG"
    logger.enable("postwhale")
    path = command_log_path(name)
    if name not in _file_sinks:
        ensure_dir(path.parent)
        _file_sinks[name] = logger.add(
            str(path),
            level=level,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
            encoding="utf-8",
            backtrace=False,
            diagnose=False,
        )
    return path
