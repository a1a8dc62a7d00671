"""
Logging setup for Reflect.

Modules log with `logging.getLogger(__name__)` and event-style messages
(`llm_routed`, `pin_rejected`, ...) carrying their details in `extra`.
This module decides where those records go and how they look:

- production: one JSON object per line on stdout
- anything else: rich-rendered lines on stderr

Credentials must never reach a log line. Any extra whose name ends in
`_key` (or is `authorization`/`pin`) is redacted by both renderers.

Usage:
    settings = load_settings()
    configure_logging(env=settings.env, level=settings.log_level)
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

REDACTED = "[redacted]"

_SENSITIVE_NAMES = frozenset({"authorization", "pin", "master_key"})

# Every attribute a bare LogRecord carries; anything else came from `extra`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "postgrest")

_session_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "reflect_session_id", default=None
)


# ── Session id ────────────────────────────────────────────────────────


def set_session_id(session_id: str) -> None:
    """Stamp records from the current context (and tasks it spawns)."""
    _session_id.set(session_id)


def get_session_id() -> Optional[str]:
    return _session_id.get()


def clear_session_id() -> None:
    _session_id.set(None)


class ContextFilter(logging.Filter):
    """Copies the active session id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        session_id = get_session_id()
        if session_id and not hasattr(record, "session_id"):
            record.session_id = session_id  # type: ignore[attr-defined]
        return True


# ── Extras ────────────────────────────────────────────────────────────


def is_sensitive(name: str) -> bool:
    name = name.lower()
    return name.endswith("_key") or name in _SENSITIVE_NAMES


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """The `extra` fields of `record`, sorted by name, secrets redacted."""
    extras = {}
    for name in sorted(vars(record)):
        if name in _RECORD_ATTRS or name.startswith("_"):
            continue
        value = getattr(record, name)
        extras[name] = REDACTED if is_sensitive(name) else value
    return extras


# ── Renderers ─────────────────────────────────────────────────────────


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp": "...", "level": "WARNING", "logger": "reflect.llm.router",
         "message": "llm_primary_failed", "session_id": "...", "tier": "fast"}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_extras(record))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """`message key=value ...` for the rich console handler."""

    def format(self, record: logging.LogRecord) -> str:
        pairs = " ".join(
            f"{name}={value}" for name, value in record_extras(record).items()
        )
        line = f"{record.getMessage()}  {pairs}" if pairs else record.getMessage()
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ── Setup ─────────────────────────────────────────────────────────────


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper().strip())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def _build_handler(env: str) -> logging.Handler:
    if env == "production":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            log_time_format="[%H:%M:%S]",
        )
        handler.setFormatter(DevFormatter())
    handler.addFilter(ContextFilter())
    handler._reflect = True  # type: ignore[attr-defined]
    return handler


def reflect_handlers(logger: Optional[logging.Logger] = None) -> list[logging.Handler]:
    """Handlers installed by configure_logging() on `logger` (default: root)."""
    logger = logger or logging.getLogger()
    return [h for h in logger.handlers if getattr(h, "_reflect", False)]


def configure_logging(
    env: Optional[str] = None,
    level: int | str = logging.WARNING,
) -> logging.Handler:
    """
    Install Reflect's handler on the root logger.

    Calling it again swaps the previous Reflect handler; handlers added by
    anyone else (pytest, an embedding app) are left alone.

    Args:
        env: "production" for JSON, anything else for console output.
             Defaults to REFLECT_ENV, then "development".
        level: Root level, as a number or a name such as "info".

    Returns:
        The installed handler.
    """
    env = (env or os.environ.get("REFLECT_ENV") or "development").lower().strip()
    resolved = _resolve_level(level)

    root = logging.getLogger()
    for old in reflect_handlers(root):
        root.removeHandler(old)
        old.close()

    handler = _build_handler(env)
    root.addHandler(handler)
    root.setLevel(resolved)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
