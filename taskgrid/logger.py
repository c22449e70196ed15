"""Timestamped logging to the console and to per-component log files."""

from __future__ import annotations

import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TextIO

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(Enum):
    """Severity of a log line; the value is its padded label."""

    INFO = "[INFO]    "
    WARNING = "[WARNING] "
    ERROR = "[ERROR]   "


def _stamp(when: datetime | None) -> str:
    return (when if when is not None else datetime.now()).strftime(TIMESTAMP_FORMAT)


def format_message(
    who: str,
    message: str,
    level: LogLevel = LogLevel.INFO,
    when: datetime | None = None,
) -> str:
    """Build a line of the form ``[timestamp] [LEVEL]   who: message``."""
    return f"[{_stamp(when)}] {level.value}{who}: {message}"


def log(who: str, message: str, level: LogLevel = LogLevel.INFO) -> None:
    """Print a formatted message to standard output."""
    print(format_message(who, message, level), flush=True)


def format_event(level: str, message: str, when: datetime | None = None) -> str:
    """Build a line of the form ``[timestamp] [LEVEL]    message``."""
    return f"[{_stamp(when)}] [{level}]    {message}"


def log_event(level: str, message: str, stream: TextIO | None = None) -> None:
    """Write a formatted event line to ``stream`` (standard output by default)."""
    out = sys.stdout if stream is None else stream
    out.write(format_event(level, message) + "\n")
    out.flush()


def log_component(component: str, message: str, log_dir: str | Path = "logs") -> None:
    """Append a message to ``<log_dir>/<component>.log`` and echo it to the console.

    The file is written only when it can be opened; the console line is always printed.
    """
    path = Path(log_dir) / f"{component}.log"
    try:
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{_stamp(None)}] {message}\n")
    except OSError:
        pass
    print(f"[{component}] {message}", flush=True)