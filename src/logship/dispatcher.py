"""Sink dispatcher.

Fans each record out to every configured sink. Sinks are called one after
another, but each call is isolated: an exception from one sink is reported
and the next sink still receives the record. The collector sink only
schedules work in emit(), so its network latency never reaches the caller
or the other sinks.
"""

import logging
import time
from typing import Any, Iterable, List, Mapping, Optional

from logship.enricher import MonotonicClock
from logship.formatting import SOURCE_CONTEXT
from logship.models import Level, LogRecord, SinkKind
from logship.sinks.base import Sink

logger = logging.getLogger(__name__)


class SinkDispatcher:
    """Delivers records to a fixed set of sinks.

    Pipeline warnings (failed collector deliveries, misbehaving sinks) are
    written to console sinks only, so a failing collector never receives
    reports about its own failures.
    """

    def __init__(self, sinks: Iterable[Sink] = (), clock: Optional[MonotonicClock] = None) -> None:
        self.sinks: List[Sink] = list(sinks)
        # Shared with the enricher so warnings never predate the records they follow.
        self.clock = clock or MonotonicClock()

    @property
    def console_sinks(self) -> List[Sink]:
        return [sink for sink in self.sinks if sink.kind is SinkKind.CONSOLE]

    def add_sink(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def dispatch(self, record: LogRecord) -> None:
        """Deliver a record to every sink, isolating sink failures."""
        for sink in self.sinks:
            try:
                sink.emit(record)
            except Exception as e:
                if sink.kind is SinkKind.CONSOLE:
                    logger.error(f"Console sink raised: {e}")
                else:
                    self.report_warning(
                        "Sink {Sink} failed: {Error}",
                        {"Sink": sink.name, "Error": str(e)},
                    )

    def report_warning(
        self, template: str, properties: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Write a pipeline warning to the console sinks only.

        Used as the collector's failure callback.
        """
        props = dict(properties or {})
        props.setdefault(SOURCE_CONTEXT, "logship")
        record = LogRecord(
            timestamp=self.clock.now(),
            level=Level.WARNING,
            message_template=template,
            properties=props,
        )

        console_sinks = self.console_sinks
        if not console_sinks:
            logger.warning(record.render())
            return

        for sink in console_sinks:
            try:
                sink.emit(record)
            except Exception as e:
                logger.error(f"Console sink raised: {e}")

    def close(self, timeout: float = 0.0) -> None:
        """Close all sinks, sharing one deadline between them."""
        deadline = time.monotonic() + timeout
        for sink in self.sinks:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                sink.close(remaining)
            except Exception as e:
                logger.error(f"Error closing {sink.name} sink: {e}")
