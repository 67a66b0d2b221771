"""Trace context correlation.

This module reads the active OpenTelemetry span so log records can carry
trace_id, span_id and parent_id.
"""

from logship.tracing.context import TraceContextReader

__all__ = ["TraceContextReader"]
