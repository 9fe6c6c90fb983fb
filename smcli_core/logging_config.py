"""
Logging configuration for smcli.

Supports two output formats:
  - **human** – coloured, single-line, readable
  - **json**  – newline-delimited JSON for log aggregators

Both pass through a redaction filter: long hex runs (private keys, seeds,
ciphertext) are masked before any handler sees them.

Usage:
    from smcli_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="smcli.log")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# 64+ hex chars = 32+ bytes, i.e. anything key-sized
_LONG_HEX = re.compile(r"\b[0-9a-fA-F]{64,}\b")
REDACTED = "<redacted>"


class _RedactSecretsFilter(logging.Filter):
    """Mask key-sized hex strings in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _LONG_HEX.sub(REDACTED, message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            log_obj["error_type"] = type(exc).__name__
            details = getattr(exc, "details", None)
            if details:
                log_obj["details"] = details
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured, concise single-line format."""

    COLOURS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[1;31m",  # bold red
    }
    RESET = "\033[0m"

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "") if self.colour else ""
        reset = self.RESET if self.colour else ""
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{colour}{ts} [{record.levelname:<7}]{reset} {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[1]:
            line += f" ({type(record.exc_info[1]).__name__})"
        return line


def setup_logging(
    level: str = "WARNING",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the command-line tool.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` for single-line output (coloured on a terminal),
        ``"json"`` for newline-delimited JSON.
    log_file : str, optional
        If provided, logs are *also* written to this file (always in JSON
        format for machine parsing).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Remove any existing handlers (avoid duplicates on reload)
    root.handlers.clear()
    redact = _RedactSecretsFilter()

    # --- Console handler ---
    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        console.setFormatter(_HumanFormatter(colour=sys.stderr.isatty()))
    console.addFilter(redact)
    root.addHandler(console)

    # --- Optional file handler ---
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())  # always JSON for files
        fh.addFilter(redact)
        root.addHandler(fh)
