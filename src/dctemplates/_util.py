"""Shared utilities for dctemplates: console logging, debug tracing."""

import os
import sys
from typing import Optional, TextIO

_DEBUG = bool(os.environ.get("DCTEMPLATES_DEBUG", ""))

_COLORS = {
    "INFO": "\033[0;32m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
    "TEST": "\033[0;34m",
}
_RESET = "\033[0m"


def debug(label: str, msg: str) -> None:
    """Print a debug message to stderr when DCTEMPLATES_DEBUG is set."""
    if _DEBUG:
        print(f"[dctemplates] {label}: {msg}", file=sys.stderr)


def _use_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _emit(level: str, msg: str, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdout
    if _use_color(stream):
        prefix = f"{_COLORS[level]}[{level}]{_RESET}"
    else:
        prefix = f"[{level}]"
    print(f"{prefix} {msg}", file=stream, flush=True)


def log_info(msg: str) -> None:
    _emit("INFO", msg)


def log_warn(msg: str) -> None:
    _emit("WARN", msg)


def log_error(msg: str) -> None:
    _emit("ERROR", msg, sys.stderr)


def log_test(msg: str) -> None:
    _emit("TEST", msg)
