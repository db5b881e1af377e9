"""Event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Upload lifecycle
    parse_started = "parse_started"
    parse_completed = "parse_completed"
    parse_failed = "parse_failed"

    # Templates
    templates_loaded = "templates_loaded"
    template_load_failed = "template_load_failed"

    # Generation lifecycle
    generation_started = "generation_started"
    generation_completed = "generation_completed"
    generation_failed = "generation_failed"
    archive_created = "archive_created"

    # Session
    session_reset = "session_reset"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

UNSUPPORTED_FORMAT = "unsupported_format"
EMPTY_DATA = "empty_data"
READ_ERROR = "read_error"
TEMPLATE_NOT_LOADED = "template_not_loaded"
TEMPLATE_LOAD_ERROR = "template_load_error"
TEMPLATE_MISMATCH = "template_mismatch"
RENDER_ERROR = "render_error"

_ERROR_CODES = {
    "UnsupportedFormat": UNSUPPORTED_FORMAT,
    "EmptyData": EMPTY_DATA,
    "ReadError": READ_ERROR,
    "TemplateNotLoaded": TEMPLATE_NOT_LOADED,
    "TemplateLoadError": TEMPLATE_LOAD_ERROR,
    "TemplateMismatchError": TEMPLATE_MISMATCH,
    "RenderError": RENDER_ERROR,
}


def error_code_for(exc: BaseException) -> str | None:
    """Map an exception to its stable error code, if it has one."""
    return _ERROR_CODES.get(type(exc).__name__)


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long string values truncated."""
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, dict):
            out[k] = truncate_context(v)
        elif isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
            out[k] = v[:_MAX_VALUE_LEN] + "...[truncated]"
        else:
            out[k] = v
    return out


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FormatDocsEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Set by ``configure_sink``; until then events are discarded.
_sink: Any = None  # EventSink | None


def configure_sink(logs_dir: Any, *, fsync: bool = False) -> None:
    """Route emitted events to ``<logs_dir>/events.ndjson``.

    Call once at CLI command or server startup.
    """
    global _sink
    from pathlib import Path

    from formatdocs.logging.sink import EventSink

    _sink = EventSink(Path(logs_dir), fsync=fsync)


def disable_sink() -> None:
    global _sink
    _sink = None


def _get_sink() -> Any:
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[formatdocs] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: FormatDocsEvent) -> None:
    """Write an event to the configured sink.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = _get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": truncate_context(event.context)})
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        FormatDocsEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        )
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        FormatDocsEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        FormatDocsEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )
