"""Pipeline configuration module.

This module provides configuration for the console sink, the HTTP
collector sink and the pipeline as a whole. Configuration is built once
at startup, from code, environment variables or a YAML file, and
validated before the pipeline is constructed.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

import yaml

from logship.exceptions import ConfigurationError
from logship.models import Level, SinkKind, SinkTarget, TrustPolicy
from logship.sinks.tls import normalize_fingerprint


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_number(name: str, default: str, cast: type) -> Any:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid numeric value {raw!r}", config_key=name)


def _parse_properties(raw: Optional[str]) -> Dict[str, str]:
    """Parse "key=value,key2=value2" into a dict."""
    properties: Dict[str, str] = {}
    if not raw:
        return properties
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(
                f"Invalid property {item!r}, expected key=value",
                config_key="LOGSHIP_STATIC_PROPERTIES",
            )
        properties[key.strip()] = value.strip()
    return properties


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _require_bool(value: Any, key: str) -> None:
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"Expected true or false, got {value!r}", config_key=key
        )


def _require_number(value: Any, key: str, integer: bool = False) -> None:
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        expected = "an integer" if integer else "a number"
        raise ConfigurationError(f"Expected {expected}, got {value!r}", config_key=key)


def _require_str(value: Any, key: str) -> None:
    """Check an optional string setting."""
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"Expected a string, got {value!r}", config_key=key)


@dataclass
class ConsoleConfig:
    """Configuration for the console sink."""

    enabled: bool = True
    format: str = "text"  # or "json"
    stream: str = "stdout"  # or "stderr"
    include_trace_context: bool = True

    def __post_init__(self) -> None:
        self.format = _lower(self.format)
        self.stream = _lower(self.stream)

    @classmethod
    def from_env(cls) -> "ConsoleConfig":
        """Create configuration from environment variables."""
        return cls(
            enabled=_env_bool("LOGSHIP_CONSOLE_ENABLED", "true"),
            format=os.getenv("LOGSHIP_CONSOLE_FORMAT", "text"),
            stream=os.getenv("LOGSHIP_CONSOLE_STREAM", "stdout"),
            include_trace_context=_env_bool("LOGSHIP_CONSOLE_TRACE_CONTEXT", "true"),
        )

    def validate(self) -> None:
        _require_bool(self.enabled, "console.enabled")
        _require_bool(self.include_trace_context, "console.include_trace_context")
        if self.format not in ("text", "json"):
            raise ConfigurationError(
                f"Invalid console format: {self.format}. Must be 'text' or 'json'",
                config_key="console.format",
            )
        if self.stream not in ("stdout", "stderr"):
            raise ConfigurationError(
                f"Invalid console stream: {self.stream}. Must be 'stdout' or 'stderr'",
                config_key="console.stream",
            )


@dataclass
class CollectorConfig:
    """Configuration for the HTTP event collector sink.

    Attributes:
        enabled: Ship records to the collector.
        endpoint: Collector URL, e.g. https://localhost:8088.
        auth_token: Collector token sent in the Authorization header.
        source_type: Source type label attached to every event.
        trust_policy: Strict, TrustAll or PinnedFingerprint.
        pinned_fingerprint: SHA-256 certificate fingerprint for PinnedFingerprint.
        ca_bundle: CA bundle file for Strict validation (optional).
        timeout: Per-request timeout in seconds.
        max_workers: Delivery worker threads.
        max_pending: Maximum in-flight deliveries before records are dropped.
        payload_format: "record" posts the record document as the body,
            "hec" wraps it in an event collector envelope.
        index: Collector index (optional).
        host: Host metadata (optional).
        source: Source metadata (optional).
    """

    enabled: bool = False
    endpoint: Optional[str] = None
    auth_token: Optional[str] = None
    source_type: str = "logship"
    trust_policy: str = "Strict"
    pinned_fingerprint: Optional[str] = None
    ca_bundle: Optional[str] = None
    timeout: float = 5.0
    max_workers: int = 4
    max_pending: int = 1000
    payload_format: str = "record"
    index: Optional[str] = None
    host: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        self.payload_format = _lower(self.payload_format)

    @classmethod
    def from_env(cls) -> "CollectorConfig":
        """Create configuration from environment variables.

        The collector is enabled by default when an endpoint is set.
        """
        endpoint = os.getenv("LOGSHIP_COLLECTOR_ENDPOINT")
        return cls(
            enabled=_env_bool(
                "LOGSHIP_COLLECTOR_ENABLED", "true" if endpoint else "false"
            ),
            endpoint=endpoint,
            auth_token=os.getenv("LOGSHIP_COLLECTOR_TOKEN"),
            source_type=os.getenv("LOGSHIP_SOURCE_TYPE", "logship"),
            trust_policy=os.getenv("LOGSHIP_TRUST_POLICY", "Strict"),
            pinned_fingerprint=os.getenv("LOGSHIP_PINNED_FINGERPRINT"),
            ca_bundle=os.getenv("LOGSHIP_CA_BUNDLE"),
            timeout=_env_number("LOGSHIP_COLLECTOR_TIMEOUT", "5.0", float),
            max_workers=_env_number("LOGSHIP_COLLECTOR_MAX_WORKERS", "4", int),
            max_pending=_env_number("LOGSHIP_COLLECTOR_MAX_PENDING", "1000", int),
            payload_format=os.getenv("LOGSHIP_COLLECTOR_PAYLOAD_FORMAT", "record"),
            index=os.getenv("LOGSHIP_COLLECTOR_INDEX"),
            host=os.getenv("LOGSHIP_COLLECTOR_HOST"),
            source=os.getenv("LOGSHIP_COLLECTOR_SOURCE"),
        )

    @property
    def policy(self) -> TrustPolicy:
        return TrustPolicy.parse(self.trust_policy)

    def validate(self) -> None:
        """Validate collector settings.

        Raises:
            ConfigurationError: If the collector is enabled and misconfigured.
        """
        _require_bool(self.enabled, "collector.enabled")
        if not self.enabled:
            return

        for name in (
            "endpoint",
            "auth_token",
            "source_type",
            "pinned_fingerprint",
            "ca_bundle",
            "index",
            "host",
            "source",
        ):
            _require_str(getattr(self, name), f"collector.{name}")
        _require_number(self.timeout, "collector.timeout")
        _require_number(self.max_workers, "collector.max_workers", integer=True)
        _require_number(self.max_pending, "collector.max_pending", integer=True)

        if not self.endpoint:
            raise ConfigurationError(
                "Collector endpoint required when collector is enabled",
                config_key="collector.endpoint",
            )
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Malformed collector endpoint: {self.endpoint}",
                config_key="collector.endpoint",
            )
        if not self.auth_token:
            raise ConfigurationError(
                "Collector auth token required when collector is enabled",
                config_key="collector.auth_token",
            )

        try:
            policy = self.policy
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="collector.trust_policy")

        if policy is TrustPolicy.PINNED_FINGERPRINT:
            if not self.pinned_fingerprint:
                raise ConfigurationError(
                    "PinnedFingerprint policy requires pinned_fingerprint",
                    config_key="collector.pinned_fingerprint",
                )
            try:
                normalize_fingerprint(self.pinned_fingerprint)
            except ValueError as e:
                raise ConfigurationError(
                    str(e), config_key="collector.pinned_fingerprint"
                )

        if self.ca_bundle and not Path(self.ca_bundle).is_file():
            raise ConfigurationError(
                f"CA bundle not found: {self.ca_bundle}",
                config_key="collector.ca_bundle",
            )
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Timeout must be positive: {self.timeout}",
                config_key="collector.timeout",
            )
        if self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be >= 1: {self.max_workers}",
                config_key="collector.max_workers",
            )
        if self.max_pending < 1:
            raise ConfigurationError(
                f"max_pending must be >= 1: {self.max_pending}",
                config_key="collector.max_pending",
            )
        if self.payload_format not in ("record", "hec"):
            raise ConfigurationError(
                f"Invalid payload format: {self.payload_format}. Must be 'record' or 'hec'",
                config_key="collector.payload_format",
            )

    def to_sink_target(self) -> SinkTarget:
        """Build the SinkTarget for this collector."""
        return SinkTarget(
            kind=SinkKind.HTTP_COLLECTOR,
            endpoint=self.endpoint,
            auth_token=self.auth_token,
            source_type=self.source_type,
            trust_policy=self.policy,
            pinned_fingerprint=self.pinned_fingerprint,
            ca_bundle=self.ca_bundle,
            timeout=self.timeout,
            payload_format=self.payload_format,
            index=self.index,
            host=self.host,
            source=self.source,
        )


@dataclass
class PipelineConfig:
    """Complete pipeline configuration.

    Example:
        >>> # Create from environment variables
        >>> config = PipelineConfig.from_env()
        >>>
        >>> # Create programmatically
        >>> config = PipelineConfig(
        ...     minimum_level="Information",
        ...     static_properties={"Application": "weather-api"},
        ...     collector=CollectorConfig(
        ...         enabled=True,
        ...         endpoint="https://localhost:8088",
        ...         auth_token="test-hec-token",
        ...         source_type="Weather-Logs",
        ...     ),
        ... )
        >>> config.validate()
    """

    minimum_level: str = "Debug"
    static_properties: Dict[str, Any] = field(default_factory=dict)
    shutdown_grace: float = 5.0
    console: ConsoleConfig = field(default_factory=ConsoleConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create complete configuration from environment variables.

        Environment Variables:
            Pipeline:
                LOGSHIP_MINIMUM_LEVEL: Severity floor (default: Debug)
                LOGSHIP_STATIC_PROPERTIES: key=value,key2=value2 added to every record
                LOGSHIP_SHUTDOWN_GRACE: Seconds to wait for in-flight deliveries (default: 5.0)

            Console:
                LOGSHIP_CONSOLE_ENABLED: Enable console sink (default: true)
                LOGSHIP_CONSOLE_FORMAT: text or json (default: text)
                LOGSHIP_CONSOLE_STREAM: stdout or stderr (default: stdout)
                LOGSHIP_CONSOLE_TRACE_CONTEXT: Show trace ids (default: true)

            Collector:
                LOGSHIP_COLLECTOR_ENABLED: Enable collector (default: true if endpoint set)
                LOGSHIP_COLLECTOR_ENDPOINT: Collector URL
                LOGSHIP_COLLECTOR_TOKEN: Collector auth token
                LOGSHIP_SOURCE_TYPE: Source type label (default: logship)
                LOGSHIP_TRUST_POLICY: Strict, TrustAll or PinnedFingerprint (default: Strict)
                LOGSHIP_PINNED_FINGERPRINT: SHA-256 certificate fingerprint
                LOGSHIP_CA_BUNDLE: CA bundle path for Strict validation
                LOGSHIP_COLLECTOR_TIMEOUT: Request timeout in seconds (default: 5.0)
                LOGSHIP_COLLECTOR_MAX_WORKERS: Delivery threads (default: 4)
                LOGSHIP_COLLECTOR_MAX_PENDING: In-flight limit (default: 1000)
                LOGSHIP_COLLECTOR_PAYLOAD_FORMAT: record or hec (default: record)
                LOGSHIP_COLLECTOR_INDEX / _HOST / _SOURCE: Event metadata

        Returns:
            PipelineConfig with all sub-configurations.
        """
        return cls(
            minimum_level=os.getenv("LOGSHIP_MINIMUM_LEVEL", "Debug"),
            static_properties=_parse_properties(os.getenv("LOGSHIP_STATIC_PROPERTIES")),
            shutdown_grace=_env_number("LOGSHIP_SHUTDOWN_GRACE", "5.0", float),
            console=ConsoleConfig.from_env(),
            collector=CollectorConfig.from_env(),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        """Create configuration from a nested mapping (e.g. parsed YAML).

        Raises:
            ConfigurationError: If a section contains unknown keys.
        """
        data = dict(data or {})
        console_data = data.pop("console", None) or {}
        collector_data = data.pop("collector", None) or {}
        try:
            return cls(
                console=ConsoleConfig(**console_data),
                collector=CollectorConfig(**collector_data),
                **data,
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from a YAML file.

        Example file:
            minimum_level: Information
            static_properties:
              Application: weather-api
            collector:
              enabled: true
              endpoint: https://localhost:8088
              auth_token: test-hec-token
              source_type: Weather-Logs
              trust_policy: Strict

        Raises:
            ConfigurationError: If the file cannot be read or parsed.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping")
        return cls.from_dict(data)

    @property
    def level(self) -> Level:
        return Level.parse(self.minimum_level)

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        try:
            self.level
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="minimum_level")

        _require_number(self.shutdown_grace, "shutdown_grace")
        if self.shutdown_grace < 0:
            raise ConfigurationError(
                f"shutdown_grace must be >= 0: {self.shutdown_grace}",
                config_key="shutdown_grace",
            )
        if not isinstance(self.static_properties, dict):
            raise ConfigurationError(
                "static_properties must be a mapping", config_key="static_properties"
            )

        self.console.validate()
        self.collector.validate()

    def sink_targets(self) -> list:
        """Build SinkTargets for every enabled sink."""
        targets = []
        if self.console.enabled:
            targets.append(SinkTarget(kind=SinkKind.CONSOLE))
        if self.collector.enabled:
            targets.append(self.collector.to_sink_target())
        return targets
