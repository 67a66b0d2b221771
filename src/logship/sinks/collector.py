"""HTTP event collector sink.

Records are posted to the collector on a small pool of worker threads that
share one httpx client (and so one connection pool). emit() only submits
work, so the logging caller never waits on the network.

Delivery is best effort. Any failure (connection error, TLS error, non-2xx
response, unserializable record) is reported through the failure callback
and the record is dropped. There is no retry queue.
"""

import json
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Mapping, Optional, Set
from urllib.parse import urlparse

import httpx

from logship.exceptions import DeliveryError, SerializationError
from logship.metrics import (
    OUTCOME_DELIVERED,
    OUTCOME_DROPPED,
    OUTCOME_FAILED,
    PipelineMetrics,
)
from logship.models import LogRecord, SinkKind, SinkTarget
from logship.sinks.base import Sink
from logship.sinks.tls import create_ssl_context

logger = logging.getLogger(__name__)

# Default event endpoint path for HEC-style collectors
DEFAULT_EVENT_PATH = "/services/collector/event"

FailureCallback = Callable[[str, Mapping[str, Any]], None]

_delivery_state = threading.local()


def in_delivery() -> bool:
    """True while the calling thread is posting a record to a collector.

    Anything logged during delivery (httpx, httpcore, ssl) must not be fed
    back into the pipeline.
    """
    return getattr(_delivery_state, "active", False)


def resolve_event_url(endpoint: str) -> str:
    """Append the default event path when the endpoint has none."""
    parsed = urlparse(endpoint)
    if parsed.path in ("", "/"):
        return endpoint.rstrip("/") + DEFAULT_EVENT_PATH
    return endpoint


class HttpCollectorSink(Sink):
    """Asynchronous, fire-and-forget delivery to an HTTP event collector.

    Example:
        >>> target = CollectorConfig(
        ...     enabled=True,
        ...     endpoint="https://localhost:8088",
        ...     auth_token="test-hec-token",
        ...     source_type="Weather-Logs",
        ... ).to_sink_target()
        >>> sink = HttpCollectorSink(target)
        >>> sink.emit(record)  # returns immediately
        >>> sink.close(timeout=5.0)
    """

    kind = SinkKind.HTTP_COLLECTOR

    def __init__(
        self,
        target: SinkTarget,
        client: Optional[httpx.Client] = None,
        max_workers: int = 4,
        max_pending: int = 1000,
        metrics: Optional[PipelineMetrics] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        """Initialize the collector sink.

        Args:
            target: HttpCollector sink target.
            client: Preconfigured httpx client. If None, one is created with the
                target's trust policy and timeout.
            max_workers: Number of delivery threads.
            max_pending: In-flight limit; records beyond it are dropped.
            metrics: Metrics registry for delivery outcomes.
            on_failure: Called with (message_template, properties) for every
                failed or dropped delivery. Defaults to the module logger.

        Raises:
            ConfigurationError: If the target's TLS settings are unusable.
        """
        if target.kind is not SinkKind.HTTP_COLLECTOR or not target.endpoint:
            raise ValueError("HttpCollectorSink requires an HttpCollector target")

        self.target = target
        self.url = resolve_event_url(target.endpoint)
        self.max_pending = max_pending
        self.metrics = metrics
        self.on_failure = on_failure

        self._owns_client = client is None
        if client is None:
            client = httpx.Client(
                verify=create_ssl_context(target),
                timeout=target.timeout,
                limits=httpx.Limits(
                    max_connections=max_workers,
                    max_keepalive_connections=max_workers,
                ),
            )
        self._client = client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="logship-collector",
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Splunk {self.target.auth_token}",
            "Content-Type": "application/json",
        }
        if self.target.source_type:
            headers["X-Source-Type"] = self.target.source_type
        return headers

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def emit(self, record: LogRecord) -> None:
        """Schedule delivery of a record without waiting for it."""
        with self._lock:
            if self._closed:
                reason = "sink is closed"
            elif len(self._pending) >= self.max_pending:
                reason = f"{self.max_pending} deliveries already in flight"
            else:
                reason = None
                try:
                    future = self._executor.submit(self._deliver, record)
                except RuntimeError as e:
                    reason = str(e)
                else:
                    self._pending.add(future)
                    if self.metrics:
                        self.metrics.collector_inflight.inc()

        if reason is not None:
            self._count(OUTCOME_DROPPED)
            self._report(
                "Dropped log record for {Endpoint}: {Reason}",
                {"Endpoint": self.url, "Reason": reason},
            )
            return

        future.add_done_callback(self._discard)

    def encode(self, record: LogRecord) -> bytes:
        """Build the request body for a record.

        Raises:
            SerializationError: If the record cannot be serialized.
        """
        if self.target.payload_format != "hec":
            return record.to_json().encode("utf-8")

        envelope: Dict[str, Any] = {
            "time": round(record.timestamp.timestamp(), 6),
            "sourcetype": self.target.source_type,
            "event": json.loads(record.to_json()),
        }
        for key in ("index", "host", "source"):
            value = getattr(self.target, key)
            if value:
                envelope[key] = value
        return json.dumps(envelope).encode("utf-8")

    def send(self, record: LogRecord) -> httpx.Response:
        """Deliver a record synchronously.

        Raises:
            SerializationError: If the record cannot be serialized.
            DeliveryError: If the collector rejects the record.
            httpx.HTTPError: On transport failure.
        """
        body = self.encode(record)
        response = self._client.post(self.url, content=body, headers=self.headers)
        if not response.is_success:
            raise DeliveryError(
                f"Collector returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def close(self, timeout: float = 0.0) -> None:
        """Stop accepting records and wait up to timeout seconds for in-flight ones.

        Deliveries still running after the grace period are abandoned.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._pending)

        not_done: Set[Future] = set()
        if pending:
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning(
                    f"Abandoning {len(not_done)} collector deliveries after {timeout}s"
                )

        self._executor.shutdown(wait=False, cancel_futures=True)
        for future in not_done:
            if future.cancelled():
                self._count(OUTCOME_DROPPED)
        if self._owns_client:
            self._client.close()

    def _deliver(self, record: LogRecord) -> None:
        start = time.perf_counter()
        _delivery_state.active = True
        try:
            self.send(record)
        except SerializationError as e:
            self._count(OUTCOME_FAILED)
            self._report(
                "Dropped unserializable log record: {Error}",
                {"Error": str(e)},
            )
        except Exception as e:
            self._count(OUTCOME_FAILED, time.perf_counter() - start)
            self._report(
                "Failed to deliver log record to {Endpoint}: {Error}",
                {"Endpoint": self.url, "Error": f"{type(e).__name__}: {e}"},
            )
        else:
            self._count(OUTCOME_DELIVERED, time.perf_counter() - start)
        finally:
            _delivery_state.active = False

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if self.metrics:
            self.metrics.collector_inflight.dec()

    def _count(self, outcome: str, duration: Optional[float] = None) -> None:
        if self.metrics:
            self.metrics.record_delivery(outcome, duration)

    def _report(self, template: str, properties: Mapping[str, Any]) -> None:
        if self.on_failure is None:
            logger.warning(template.format(**properties))
            return
        try:
            self.on_failure(template, properties)
        except Exception as e:
            logger.error(f"Failure callback raised: {e}")
