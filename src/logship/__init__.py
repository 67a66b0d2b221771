"""Log enrichment and shipping pipeline.

This package correlates log records with the active OpenTelemetry trace
context and ships them to a console sink and an HTTP event collector:

- Trace context reading (trace_id, span_id, parent_id)
- Record enrichment with static properties and message templates
- Isolated, best-effort dispatch to console and collector sinks
- Certificate trust policies for the collector (Strict, TrustAll, PinnedFingerprint)
- A stdlib logging bridge and Prometheus delivery metrics

Example:
    >>> from logship import CollectorConfig, LoggerPipeline, PipelineConfig
    >>>
    >>> config = PipelineConfig(
    ...     collector=CollectorConfig(
    ...         enabled=True,
    ...         endpoint="https://localhost:8088",
    ...         auth_token="test-hec-token",
    ...         source_type="Weather-Logs",
    ...     ),
    ... )
    >>> pipeline = LoggerPipeline.from_config(config)
    >>> pipeline.information("Received a request for weather forecast")
    >>> pipeline.shutdown()
"""

from logship.config import CollectorConfig, ConsoleConfig, PipelineConfig
from logship.exceptions import (
    CertificatePinError,
    ConfigurationError,
    DeliveryError,
    LogshipError,
    SerializationError,
)
from logship.handler import PipelineHandler, attach_to_logging
from logship.models import Level, LogRecord, SinkKind, SinkTarget, TraceContext, TrustPolicy
from logship.pipeline import BoundLogger, LoggerPipeline

__version__ = "0.1.0"

__all__ = [
    "BoundLogger",
    "CertificatePinError",
    "CollectorConfig",
    "ConfigurationError",
    "ConsoleConfig",
    "DeliveryError",
    "Level",
    "LogRecord",
    "LoggerPipeline",
    "LogshipError",
    "PipelineConfig",
    "PipelineHandler",
    "SerializationError",
    "SinkKind",
    "SinkTarget",
    "TraceContext",
    "TrustPolicy",
    "attach_to_logging",
]
