"""Read the active OpenTelemetry trace context.

The reader never starts spans or touches exporters; it only looks at the
span that is current in the given OpenTelemetry Context, or in the
task-local current context when none is passed.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID, SpanContext

from logship.models import TraceContext

logger = logging.getLogger(__name__)


def format_trace_id(trace_id: int) -> str:
    return format(trace_id, "032x")


def format_span_id(span_id: int) -> str:
    return format(span_id, "016x")


class TraceContextReader:
    """Reads trace/span/parent identifiers of the current span.

    Safe to call concurrently: OpenTelemetry keeps the current context in
    contextvars, so every thread and asyncio task sees its own span.

    Example:
        >>> reader = TraceContextReader()
        >>> with tracer.start_as_current_span("handle_request"):
        ...     ctx = reader.current()
        ...     ctx.trace_id
        '4bf92f3577b34da6a3ce929d0e0e4736'
    """

    def current(self, context: Optional[Context] = None) -> Optional[TraceContext]:
        """Return the active trace context, or None if no span is active.

        Args:
            context: Explicit OpenTelemetry context to read from. Defaults to
                the calling thread's or task's current context.

        Returns:
            TraceContext for a valid span, otherwise None.
        """
        try:
            span = trace.get_current_span(context)
            span_context = span.get_span_context()
        except Exception as e:
            logger.debug(f"Unable to read current span: {e}")
            return None

        if not _is_valid(span_context):
            return None

        parent_id = None
        parent = getattr(span, "parent", None)
        if isinstance(parent, SpanContext) and parent.span_id != INVALID_SPAN_ID:
            parent_id = format_span_id(parent.span_id)

        return TraceContext(
            trace_id=format_trace_id(span_context.trace_id),
            span_id=format_span_id(span_context.span_id),
            parent_id=parent_id,
        )


def _is_valid(span_context: SpanContext) -> bool:
    return (
        span_context is not None
        and span_context.trace_id != INVALID_TRACE_ID
        and span_context.span_id != INVALID_SPAN_ID
    )
