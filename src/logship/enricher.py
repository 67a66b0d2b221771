"""Record enrichment.

This module turns a level, message template and arguments into an
immutable LogRecord carrying static properties and trace identifiers.
"""

import sys
import threading
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from opentelemetry.context import Context

from logship.models import TRACE_FIELDS, Level, LogRecord
from logship.template import MessageTemplate
from logship.tracing.context import TraceContextReader


class MonotonicClock:
    """Wall clock that never goes backwards.

    Timestamps are UTC. If the system clock steps back, the previously issued
    timestamp is repeated until real time catches up.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        with self._lock:
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
        return current


class RecordEnricher:
    """Builds enriched LogRecords.

    Property precedence, highest first:
        1. explicit arguments (keyword, then positional bound to placeholders)
        2. static properties (per call, then configured at startup)
        3. trace context fields

    Example:
        >>> enricher = RecordEnricher(static_properties={"Source": "weather-api"})
        >>> record = enricher.enrich(Level.INFORMATION, "Served {Count} items", {"Count": 5})
        >>> record.render()
        'Served 5 items'
    """

    def __init__(
        self,
        static_properties: Optional[Mapping[str, Any]] = None,
        reader: Optional[TraceContextReader] = None,
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        """Initialize the enricher.

        Args:
            static_properties: Properties added to every record.
            reader: Trace context reader. Defaults to a new TraceContextReader.
            clock: Timestamp source. Defaults to a new MonotonicClock.
        """
        self.static_properties: Dict[str, Any] = dict(static_properties or {})
        self.reader = reader or TraceContextReader()
        self.clock = clock or MonotonicClock()

    def enrich(
        self,
        level: Level,
        template: str,
        args: Optional[Mapping[str, Any]] = None,
        positional: Sequence[Any] = (),
        static_properties: Optional[Mapping[str, Any]] = None,
        context: Optional[Context] = None,
        exc_info: Any = None,
    ) -> LogRecord:
        """Create an enriched record.

        Args:
            level: Record severity.
            template: Message template.
            args: Named property values.
            positional: Values bound to template placeholders in order.
            static_properties: Extra low-precedence properties for this call.
            context: Explicit OpenTelemetry context to read the span from.
            exc_info: True, an exception instance or a sys.exc_info() tuple.

        Returns:
            Immutable LogRecord.
        """
        timestamp = self.clock.now()
        merged: Dict[str, Any] = {}

        trace_context = self.reader.current(context)
        if trace_context is not None:
            merged.update(trace_context.as_properties())

        merged.update(self.static_properties)
        if static_properties:
            merged.update(static_properties)
        if positional:
            merged.update(MessageTemplate.parse(template).bind(positional))
        if args:
            merged.update(args)

        trace_fields = {name: merged.pop(name, None) for name in TRACE_FIELDS}

        return LogRecord(
            timestamp=timestamp,
            level=level,
            message_template=template,
            properties=merged,
            trace_id=_as_id(trace_fields["traceId"]),
            span_id=_as_id(trace_fields["spanId"]),
            parent_id=_as_id(trace_fields["parentId"]),
            exception=format_exception(exc_info),
        )


def _as_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def format_exception(exc_info: Any) -> Optional[Dict[str, Any]]:
    """Format exception information for a record.

    Args:
        exc_info: True for the exception being handled, an exception
            instance, or a (type, value, traceback) tuple.

    Returns:
        Dictionary with type, message and traceback, or None.
    """
    if not exc_info:
        return None
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

    exc_type, exc_value, exc_tb = exc_info
    if exc_type is None:
        return None

    try:
        formatted = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    except Exception:
        formatted = None

    return {
        "type": exc_type.__name__,
        "message": str(exc_value) if exc_value is not None else None,
        "traceback": formatted,
    }
