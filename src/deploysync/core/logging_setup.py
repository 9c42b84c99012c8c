"""
Central logging for DeploySync.

- Console handler on stderr (INFO..CRITICAL by default)
- Daily rotated file handler: <base_dir>/app.log (DEBUG)
- Per-run action file: <base_dir>/YYYY-MM-DD/<action>_<run_id>.log (DEBUG)
- Secret redaction: bearer tokens, api keys and passwords are masked
- UTC timestamps in ISO-8601
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "run=%(run_id)s action=%(action)s entity=%(entity)s phase=%(phase)s | "
    "%(message)s"
)


class MaskSecretsFilter(logging.Filter):
    """Redact bearer tokens, API keys and passwords from log records."""

    _patterns = [
        re.compile(r"(Authorization:\s*Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(api[_-]?key\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(\btoken\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
    ]

    @classmethod
    def mask(cls, text: str) -> str:
        for pat in cls._patterns:
            text = pat.sub(r"\1***REDACTED***", text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self.mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(self.mask(a) if isinstance(a, str) else a for a in record.args)
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        return True


class ContextDefaultsFilter(logging.Filter):
    """Fill context fields for records logged outside a LoggerAdapter."""

    fields = ("run_id", "action", "entity", "phase")

    def filter(self, record: logging.LogRecord) -> bool:
        for f in self.fields:
            if not hasattr(record, f):
                setattr(record, f, "-")
        return True


def _utc_formatter(fmt: str) -> logging.Formatter:
    f = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%SZ")
    f.converter = time.gmtime  # type: ignore[assignment]
    return f


def _level(name: str, default: int) -> int:
    return getattr(logging, str(name).upper(), default)


def _reset_console_handler(base: logging.Logger, level: str, formatter: logging.Formatter, mask: logging.Filter) -> None:
    """Keep exactly one StreamHandler on the current sys.stderr."""
    for h in list(base.handlers):
        if type(h) is logging.StreamHandler:
            base.removeHandler(h)
            h.close()
    sh = logging.StreamHandler(stream=sys.stderr)
    sh.setLevel(_level(level, logging.INFO))
    sh.setFormatter(formatter)
    sh.addFilter(ContextDefaultsFilter())
    sh.addFilter(mask)
    base.addHandler(sh)


def _reset_app_file_handler(base: logging.Logger, base_dir: str, level: str, formatter: logging.Formatter, mask: logging.Filter) -> None:
    """Point the single TimedRotatingFileHandler at <base_dir>/app.log."""
    os.makedirs(base_dir, exist_ok=True)
    desired = os.path.abspath(os.path.join(base_dir, "app.log"))

    keep = False
    for h in list(base.handlers):
        if isinstance(h, logging.handlers.TimedRotatingFileHandler):
            if os.path.abspath(h.baseFilename) == desired:
                keep = True
                continue
            base.removeHandler(h)
            h.close()
    if keep:
        return

    rh = logging.handlers.TimedRotatingFileHandler(
        desired, when="midnight", backupCount=14, encoding="utf-8", utc=True, delay=False,
    )
    rh.setLevel(_level(level, logging.DEBUG))
    rh.setFormatter(formatter)
    rh.addFilter(ContextDefaultsFilter())
    rh.addFilter(mask)
    base.addHandler(rh)


def build_logger(
    *,
    name: str = "deploysync",
    run_id: str,
    action: str,
    base_dir: str = "logs",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    extra: Optional[Dict[str, Any]] = None,
) -> logging.LoggerAdapter:
    """
    Configure and return a LoggerAdapter.

    The base logger `<name>` carries the console and rotating handlers; the
    child `<name>.<action>.<run_id>` adds the per-run file and propagates to
    the base so every record reaches all sinks.
    """
    mask = MaskSecretsFilter()
    formatter = _utc_formatter(LOG_FORMAT)

    base = logging.getLogger(name)
    base.setLevel(logging.DEBUG)
    _reset_console_handler(base, console_level, formatter, mask)
    _reset_app_file_handler(base, base_dir, file_level, formatter, mask)

    child = logging.getLogger(f"{name}.{action}.{run_id}")
    child.setLevel(logging.DEBUG)
    child.propagate = True

    if not any(isinstance(h, logging.FileHandler) for h in child.handlers):
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        dated_dir = Path(base_dir) / today
        dated_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(dated_dir / f"{action}_{run_id}.log", encoding="utf-8", delay=False)
        fh.setLevel(_level(file_level, logging.DEBUG))
        fh.setFormatter(formatter)
        fh.addFilter(ContextDefaultsFilter())
        fh.addFilter(mask)
        child.addHandler(fh)

    extra = extra or {}
    adapter = logging.LoggerAdapter(
        child,
        {
            "run_id": run_id,
            "action": action,
            "entity": extra.get("entity"),
            "phase": extra.get("phase"),
        },
    )
    adapter.debug("Logger initialised")
    return adapter
