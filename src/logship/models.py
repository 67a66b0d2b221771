"""Data models for the log shipping pipeline.

This module defines the severity levels, trace context, the immutable
LogRecord and the SinkTarget description of a delivery destination.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from logship.exceptions import SerializationError
from logship.template import MessageTemplate


class Level(Enum):
    """Log severity levels, ordered from least to most severe."""

    DEBUG = "Debug"
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"
    FATAL = "Fatal"

    @property
    def logging_level(self) -> int:
        """Equivalent stdlib logging level."""
        return _TO_LOGGING[self]

    @classmethod
    def parse(cls, value: Any) -> "Level":
        """Parse a level from a Level, name, alias or stdlib level number.

        Args:
            value: "Information", "info", "INFO", "critical", 20, ...

        Returns:
            Matching Level.

        Raises:
            ValueError: If the value names no known level.
        """
        if isinstance(value, Level):
            return value
        if isinstance(value, int):
            return cls.from_logging_level(value)
        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        raise ValueError(f"Unknown log level: {value!r}")

    @classmethod
    def from_logging_level(cls, levelno: int) -> "Level":
        """Map a stdlib logging level number to the nearest Level at or below it."""
        if levelno >= logging.CRITICAL:
            return cls.FATAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= logging.INFO:
            return cls.INFORMATION
        return cls.DEBUG

    def __lt__(self, other: "Level") -> bool:
        if not isinstance(other, Level):
            return NotImplemented
        return self.logging_level < other.logging_level

    def __le__(self, other: "Level") -> bool:
        if not isinstance(other, Level):
            return NotImplemented
        return self.logging_level <= other.logging_level

    def __gt__(self, other: "Level") -> bool:
        if not isinstance(other, Level):
            return NotImplemented
        return self.logging_level > other.logging_level

    def __ge__(self, other: "Level") -> bool:
        if not isinstance(other, Level):
            return NotImplemented
        return self.logging_level >= other.logging_level


_TO_LOGGING = {
    Level.DEBUG: logging.DEBUG,
    Level.INFORMATION: logging.INFO,
    Level.WARNING: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.FATAL: logging.CRITICAL,
}

_ALIASES = {
    "debug": Level.DEBUG,
    "verbose": Level.DEBUG,
    "information": Level.INFORMATION,
    "info": Level.INFORMATION,
    "warning": Level.WARNING,
    "warn": Level.WARNING,
    "error": Level.ERROR,
    "fatal": Level.FATAL,
    "critical": Level.FATAL,
}


class TrustPolicy(Enum):
    """Certificate validation policy for the collector connection."""

    STRICT = "Strict"
    TRUST_ALL = "TrustAll"
    PINNED_FINGERPRINT = "PinnedFingerprint"

    @classmethod
    def parse(cls, value: Any) -> "TrustPolicy":
        """Parse a policy from its name, case and separator insensitive."""
        if isinstance(value, TrustPolicy):
            return value
        key = str(value).strip().replace("_", "").replace("-", "").lower()
        for policy in cls:
            if policy.value.lower() == key:
                return policy
        raise ValueError(f"Unknown certificate trust policy: {value!r}")


class SinkKind(Enum):
    """Kinds of delivery destination."""

    CONSOLE = "Console"
    HTTP_COLLECTOR = "HttpCollector"


@dataclass(frozen=True)
class TraceContext:
    """Identifiers of the active span.

    Attributes:
        trace_id: 32 lowercase hex characters.
        span_id: 16 lowercase hex characters.
        parent_id: Parent span id, or None for a root span.
    """

    trace_id: str
    span_id: str
    parent_id: Optional[str] = None

    def as_properties(self) -> Dict[str, str]:
        """Return the identifiers keyed by their record field names."""
        fields = {"traceId": self.trace_id, "spanId": self.span_id}
        if self.parent_id:
            fields["parentId"] = self.parent_id
        return fields


TRACE_FIELDS = ("traceId", "spanId", "parentId")


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if isinstance(obj, Mapping):
        return dict(obj)
    return str(obj)


@dataclass(frozen=True)
class LogRecord:
    """A single, immutable log emission.

    Properties are stored as a read-only mapping so no sink can change a
    record once it has been dispatched.
    """

    timestamp: datetime
    level: Level
    message_template: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_id: Optional[str] = None
    exception: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.properties, MappingProxyType):
            object.__setattr__(
                self, "properties", MappingProxyType(dict(self.properties))
            )
        if self.exception is not None and not isinstance(
            self.exception, MappingProxyType
        ):
            object.__setattr__(
                self, "exception", MappingProxyType(dict(self.exception))
            )

    @property
    def trace_context(self) -> Optional[TraceContext]:
        if not self.trace_id or not self.span_id:
            return None
        return TraceContext(self.trace_id, self.span_id, self.parent_id)

    def render(self) -> str:
        """Render the message template against the record's properties."""
        return MessageTemplate.parse(self.message_template).render(self.properties)

    def to_dict(self) -> Dict[str, Any]:
        """Return the collector representation of this record.

        Trace fields are left out entirely when absent.
        """
        data: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(timespec="microseconds"),
            "level": self.level.value,
            "message": self.render(),
            "properties": dict(self.properties),
        }
        if self.trace_id:
            data["traceId"] = self.trace_id
        if self.span_id:
            data["spanId"] = self.span_id
        if self.parent_id:
            data["parentId"] = self.parent_id
        if self.exception:
            data["exception"] = dict(self.exception)
        return data

    def to_json(self) -> str:
        """Serialize the record to JSON.

        Raises:
            SerializationError: If a property value cannot be encoded.
        """
        try:
            return json.dumps(self.to_dict(), default=_json_default)
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"Cannot serialize log record: {e}") from e


@dataclass(frozen=True)
class SinkTarget:
    """Description of one delivery destination.

    Built once at startup from configuration. Collector-specific fields are
    ignored for console targets.
    """

    kind: SinkKind
    endpoint: Optional[str] = None
    auth_token: Optional[str] = None
    source_type: Optional[str] = None
    trust_policy: TrustPolicy = TrustPolicy.STRICT
    pinned_fingerprint: Optional[str] = None
    ca_bundle: Optional[str] = None
    timeout: float = 5.0
    payload_format: str = "record"
    index: Optional[str] = None
    host: Optional[str] = None
    source: Optional[str] = None
