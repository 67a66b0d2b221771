"""Logger pipeline.

This module provides the LoggerPipeline, the single logging entry point
handed to application components. One pipeline is built at startup from a
PipelineConfig and owns its sinks until shutdown.
"""

import abc
import logging
import threading
from typing import Any, Iterable, Mapping, Optional, TextIO

import httpx
from opentelemetry.context import Context

from logship.config import PipelineConfig
from logship.dispatcher import SinkDispatcher
from logship.enricher import RecordEnricher
from logship.metrics import PipelineMetrics
from logship.models import Level, LogRecord, SinkKind, SinkTarget
from logship.sinks.base import Sink
from logship.sinks.collector import HttpCollectorSink
from logship.sinks.console import ConsoleSink

logger = logging.getLogger(__name__)


class _LevelMethods(abc.ABC):
    """Per-level convenience methods shared by the pipeline and bound loggers."""

    @abc.abstractmethod
    def log(self, level: Any, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        """Emit a record at the given level."""
        pass

    def debug(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        return self.log(Level.DEBUG, template, *args, **properties)

    def information(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        return self.log(Level.INFORMATION, template, *args, **properties)

    info = information

    def warning(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        return self.log(Level.WARNING, template, *args, **properties)

    def error(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        return self.log(Level.ERROR, template, *args, **properties)

    def fatal(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        return self.log(Level.FATAL, template, *args, **properties)

    def exception(self, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        """Log at Error level with the exception currently being handled."""
        properties.setdefault("exc_info", True)
        return self.log(Level.ERROR, template, *args, **properties)


class LoggerPipeline(_LevelMethods):
    """Enriches log records and dispatches them to sinks.

    Logging never raises and never waits on the network: records below the
    minimum level are dropped before enrichment, and any pipeline failure is
    downgraded to a console warning.

    Example:
        >>> config = PipelineConfig(
        ...     collector=CollectorConfig(
        ...         enabled=True,
        ...         endpoint="https://localhost:8088",
        ...         auth_token="test-hec-token",
        ...         source_type="Weather-Logs",
        ...     ),
        ... )
        >>> with LoggerPipeline.from_config(config) as log:
        ...     log.information("Received a request for weather forecast")
        ...     log.warning("Slow response from {Upstream}", Upstream="geo", ElapsedMs=812)
    """

    def __init__(
        self,
        sinks: Iterable[Sink] = (),
        enricher: Optional[RecordEnricher] = None,
        minimum_level: Level = Level.DEBUG,
        metrics: Optional[PipelineMetrics] = None,
        shutdown_grace: float = 5.0,
    ) -> None:
        """Initialize the pipeline.

        Args:
            sinks: Delivery destinations.
            enricher: Record enricher. Defaults to one without static properties.
            minimum_level: Severity floor; lower records are dropped.
            metrics: Metrics registry. Defaults to a private one.
            shutdown_grace: Seconds shutdown() waits for in-flight deliveries.
        """
        self.enricher = enricher or RecordEnricher()
        self.dispatcher = SinkDispatcher(clock=self.enricher.clock)
        self.minimum_level = Level.parse(minimum_level)
        self.metrics = metrics or PipelineMetrics()
        self.shutdown_grace = shutdown_grace
        self._closed = False
        self._lock = threading.Lock()

        for sink in sinks:
            self.add_sink(sink)

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        metrics: Optional[PipelineMetrics] = None,
        console_stream: Optional[TextIO] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> "LoggerPipeline":
        """Build a pipeline from validated configuration.

        Args:
            config: Pipeline configuration.
            metrics: Metrics registry (optional).
            console_stream: Stream for the console sink instead of stdout/stderr.
            http_client: httpx client for the collector instead of a new one.

        Returns:
            Ready-to-use LoggerPipeline.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        config.validate()

        pipeline = cls(
            enricher=RecordEnricher(static_properties=config.static_properties),
            minimum_level=config.level,
            metrics=metrics,
            shutdown_grace=config.shutdown_grace,
        )

        for target in config.sink_targets():
            pipeline.add_sink(
                pipeline._build_sink(target, config, console_stream, http_client)
            )

        logger.info(
            f"Logger pipeline ready with sinks: "
            f"{', '.join(s.name for s in pipeline.sinks) or 'none'}"
        )
        return pipeline

    def _build_sink(
        self,
        target: SinkTarget,
        config: PipelineConfig,
        console_stream: Optional[TextIO],
        http_client: Optional[httpx.Client],
    ) -> Sink:
        if target.kind is SinkKind.CONSOLE:
            return ConsoleSink(
                format=config.console.format,
                stream=console_stream,
                stream_name=config.console.stream,
                include_trace_context=config.console.include_trace_context,
            )
        return HttpCollectorSink(
            target,
            client=http_client,
            max_workers=config.collector.max_workers,
            max_pending=config.collector.max_pending,
            metrics=self.metrics,
            on_failure=self.dispatcher.report_warning,
        )

    @property
    def sinks(self) -> list:
        return list(self.dispatcher.sinks)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def add_sink(self, sink: Sink) -> None:
        """Add a sink. Collector sinks without a failure callback report to the console."""
        if isinstance(sink, HttpCollectorSink):
            if sink.on_failure is None:
                sink.on_failure = self.dispatcher.report_warning
            if sink.metrics is None:
                sink.metrics = self.metrics
        self.dispatcher.add_sink(sink)

    def is_enabled(self, level: Any) -> bool:
        return not self._closed and Level.parse(level) >= self.minimum_level

    def log(self, level: Any, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        """Emit a record.

        Positional args bind to the template's placeholders in order; keyword
        args are named properties. The keywords ``exc_info`` and ``context``
        are reserved for exception info and an explicit OpenTelemetry context.

        Returns:
            The dispatched record, or None if it was filtered or dropped.
        """
        exc_info = properties.pop("exc_info", None)
        context = properties.pop("context", None)
        return self.write(
            level,
            template,
            args=properties,
            positional=args,
            exc_info=exc_info,
            context=context,
        )

    def write(
        self,
        level: Any,
        template: str,
        args: Optional[Mapping[str, Any]] = None,
        positional: Iterable[Any] = (),
        static_properties: Optional[Mapping[str, Any]] = None,
        exc_info: Any = None,
        context: Optional[Context] = None,
    ) -> Optional[LogRecord]:
        """Emit a record from already separated arguments.

        Used by log(), bound loggers and the stdlib logging handler.
        """
        try:
            level = Level.parse(level)
            if not self.is_enabled(level):
                self.metrics.record_filtered()
                return None

            record = self.enricher.enrich(
                level,
                template,
                args=args,
                positional=tuple(positional),
                static_properties=static_properties,
                context=context,
                exc_info=exc_info,
            )
            self.dispatcher.dispatch(record)
            self.metrics.record_emitted(level.value)
            return record
        except Exception as e:
            logger.warning(f"Dropping log record {template!r}: {e}")
            return None

    def bind(self, **properties: Any) -> "BoundLogger":
        """Return a logger that adds properties to every record."""
        return BoundLogger(self, properties)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop accepting records and close all sinks.

        In-flight collector deliveries get up to ``timeout`` seconds
        (default: shutdown_grace) and are then abandoned.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        grace = self.shutdown_grace if timeout is None else timeout
        logger.info(f"Shutting down logger pipeline (grace {grace}s)")
        self.dispatcher.close(grace)

    def __enter__(self) -> "LoggerPipeline":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, tb: Any) -> None:
        self.shutdown()


class BoundLogger(_LevelMethods):
    """A narrow logging capability carrying extra properties.

    Bound properties have lower precedence than properties passed to an
    individual call.

    Example:
        >>> request_log = pipeline.bind(RequestId="r-42", Route="/weatherforecast")
        >>> request_log.information("Returned {Count} forecasts", 5)
    """

    def __init__(self, pipeline: LoggerPipeline, properties: Mapping[str, Any]) -> None:
        self.pipeline = pipeline
        self.properties = dict(properties)

    def bind(self, **properties: Any) -> "BoundLogger":
        return BoundLogger(self.pipeline, {**self.properties, **properties})

    def is_enabled(self, level: Any) -> bool:
        return self.pipeline.is_enabled(level)

    def log(self, level: Any, template: str, /, *args: Any, **properties: Any) -> Optional[LogRecord]:
        exc_info = properties.pop("exc_info", None)
        context = properties.pop("context", None)
        return self.pipeline.write(
            level,
            template,
            args=properties,
            positional=args,
            static_properties=self.properties,
            exc_info=exc_info,
            context=context,
        )
