"""Console sink."""

import logging
import sys
import threading
from typing import Optional, TextIO

from logship.formatting import JsonFormatter, TextFormatter
from logship.models import LogRecord, SinkKind
from logship.sinks.base import Sink

logger = logging.getLogger(__name__)


class ConsoleSink(Sink):
    """Writes one line per record to stdout or stderr.

    Writes are synchronous and serialized with a lock so lines from
    concurrent callers never interleave. A failed write is reported through
    the module logger and never raised.

    Example:
        >>> sink = ConsoleSink(format="json")
        >>> sink.emit(record)
    """

    kind = SinkKind.CONSOLE

    def __init__(
        self,
        format: str = "text",
        stream: Optional[TextIO] = None,
        stream_name: str = "stdout",
        include_trace_context: bool = True,
    ) -> None:
        """Initialize the console sink.

        Args:
            format: "text" or "json".
            stream: Explicit stream. If None, sys.stdout or sys.stderr is
                looked up on every write.
            stream_name: "stdout" or "stderr", used when stream is None.
            include_trace_context: Show trace ids in the output.
        """
        if format == "json":
            self.formatter = JsonFormatter(include_trace_context)
        else:
            self.formatter = TextFormatter(include_trace_context)
        self._stream = stream
        self._stream_name = stream_name
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        if self._stream is not None:
            return self._stream
        return getattr(sys, self._stream_name)

    def emit(self, record: LogRecord) -> None:
        try:
            line = self.formatter.format(record)
            with self._lock:
                stream = self.stream
                stream.write(line + "\n")
                stream.flush()
        except Exception as e:
            logger.error(f"Console sink write failed: {e}")
