"""Structured event logging for formatdocs.

Provides the event schema, a filesystem NDJSON sink, and safe emit helpers
that never raise uncaught exceptions.
"""

from formatdocs.logging.events import (
    EventLevel,
    EventType,
    FormatDocsEvent,
    configure_sink,
    disable_sink,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    error_code_for,
)
from formatdocs.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "FormatDocsEvent",
    "configure_sink",
    "disable_sink",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "error_code_for",
]
