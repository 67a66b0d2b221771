"""Sink interface."""

import abc

from logship.models import LogRecord, SinkKind


class Sink(abc.ABC):
    """A delivery destination for log records.

    Sinks must treat records as read-only and must not raise from emit().
    """

    kind: SinkKind

    @abc.abstractmethod
    def emit(self, record: LogRecord) -> None:
        """Deliver or schedule delivery of a record."""
        pass

    def close(self, timeout: float = 0.0) -> None:
        """Release resources, waiting up to timeout seconds for pending work."""
        pass

    @property
    def name(self) -> str:
        return self.kind.value
