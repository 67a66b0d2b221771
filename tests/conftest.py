"""Pytest fixtures for logship tests.

This module provides reusable fixtures for records, sinks, a mock collector
transport, an in-process tracer and a local TLS collector with a
self-signed certificate.
"""

import datetime
import io
import ipaddress
import json
import ssl
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from opentelemetry.sdk.trace import TracerProvider

from logship.config import CollectorConfig, ConsoleConfig, PipelineConfig
from logship.metrics import PipelineMetrics
from logship.models import Level, LogRecord, SinkKind, SinkTarget
from logship.sinks.console import ConsoleSink


# =============================================================================
# Record Fixtures
# =============================================================================


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    """Factory for LogRecords with sensible defaults."""

    def _make(
        template: str = "Received request",
        level: Level = Level.INFORMATION,
        **kwargs: Any,
    ) -> LogRecord:
        kwargs.setdefault("timestamp", datetime.datetime(2024, 1, 15, 10, 30, 45, 123456, tzinfo=datetime.timezone.utc))
        return LogRecord(level=level, message_template=template, **kwargs)

    return _make


# =============================================================================
# Tracing Fixtures
# =============================================================================


@pytest.fixture
def tracer():
    """Tracer from a private SDK TracerProvider (global provider untouched)."""
    provider = TracerProvider()
    yield provider.get_tracer("logship-tests")
    provider.shutdown()


# =============================================================================
# Sink Fixtures
# =============================================================================


@pytest.fixture
def console_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console_sink(console_stream: io.StringIO) -> ConsoleSink:
    return ConsoleSink(stream=console_stream)


@pytest.fixture
def metrics() -> PipelineMetrics:
    """Metrics with an isolated registry."""
    return PipelineMetrics()


@pytest.fixture
def collector_target() -> SinkTarget:
    return SinkTarget(
        kind=SinkKind.HTTP_COLLECTOR,
        endpoint="https://collector.test:8088",
        auth_token="test-hec-token",
        source_type="Weather-Logs",
    )


@dataclass
class RecordingCollector:
    """Mock collector endpoint backed by httpx.MockTransport."""

    status_code: int = 200
    requests: List[httpx.Request] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self.lock:
            self.requests.append(request)
        return httpx.Response(self.status_code, json={"text": "Success", "code": 0})

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def recording_collector() -> RecordingCollector:
    return RecordingCollector()


@pytest.fixture
def mock_client(recording_collector: RecordingCollector) -> Generator[httpx.Client, None, None]:
    """httpx client whose requests land in recording_collector."""
    client = httpx.Client(transport=httpx.MockTransport(recording_collector.handler))
    yield client
    client.close()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Console + collector configuration for pipeline tests."""
    return PipelineConfig(
        minimum_level="Debug",
        static_properties={"Application": "weather-api"},
        shutdown_grace=5.0,
        console=ConsoleConfig(enabled=True, format="text"),
        collector=CollectorConfig(
            enabled=True,
            endpoint="https://collector.test:8088",
            auth_token="test-hec-token",
            source_type="Weather-Logs",
        ),
    )


# =============================================================================
# TLS Collector Fixtures
# =============================================================================


@dataclass
class SelfSignedCert:
    cert_path: Path
    key_path: Path
    der: bytes


@pytest.fixture(scope="session")
def self_signed_cert(tmp_path_factory: pytest.TempPathFactory) -> SelfSignedCert:
    """Self-signed certificate for 127.0.0.1 / localhost."""
    directory = tmp_path_factory.mktemp("certs")
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "logship-test-collector")])
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    cert_path = directory / "collector.pem"
    key_path = directory / "collector.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return SelfSignedCert(
        cert_path=cert_path,
        key_path=key_path,
        der=cert.public_bytes(serialization.Encoding.DER),
    )


class _CollectorHandler(BaseHTTPRequestHandler):
    def do_POST(self) -> None:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        self.server.received.append(
            {"path": self.path, "headers": dict(self.headers), "body": json.loads(body)}
        )
        payload = b'{"text":"Success","code":0}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        pass


@dataclass
class TLSCollector:
    url: str
    received: List[Dict[str, Any]]


@pytest.fixture
def tls_collector(self_signed_cert: SelfSignedCert) -> Generator[TLSCollector, None, None]:
    """HTTPS collector on 127.0.0.1 presenting the self-signed certificate."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _CollectorHandler)
    server.received = []

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(self_signed_cert.cert_path, self_signed_cert.key_path)
    server.socket = context.wrap_socket(server.socket, server_side=True)

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    host, port = server.server_address[:2]
    yield TLSCollector(url=f"https://{host}:{port}", received=server.received)

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)
