"""TLS settings for the collector connection.

Maps a TrustPolicy onto an ``ssl.SSLContext``:

- Strict: default chain and hostname validation, optionally against a
  CA bundle.
- TrustAll: no validation at all. Accepts self-signed and expired
  certificates. Development only.
- PinnedFingerprint: no chain validation, but the handshake fails unless
  the server certificate's SHA-256 fingerprint equals the pin.
"""

import hashlib
import logging
import re
import ssl
from typing import Optional

from logship.exceptions import CertificatePinError, ConfigurationError
from logship.models import SinkTarget, TrustPolicy

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-f]{64}$")


def normalize_fingerprint(value: str) -> str:
    """Normalize a SHA-256 fingerprint to 64 lowercase hex characters.

    Accepts colon or space separated, upper or lower case input, with an
    optional "sha256:" prefix.

    Raises:
        ValueError: If the value is not a SHA-256 fingerprint.
    """
    cleaned = value.strip().lower()
    if cleaned.startswith("sha256:"):
        cleaned = cleaned[len("sha256:"):]
    cleaned = cleaned.replace(":", "").replace(" ", "")
    if not _HEX_RE.match(cleaned):
        raise ValueError(f"Not a SHA-256 fingerprint: {value!r}")
    return cleaned


def certificate_fingerprint(der: bytes) -> str:
    """Return the SHA-256 fingerprint of a DER-encoded certificate."""
    return hashlib.sha256(der).hexdigest()


class PinnedSSLSocket(ssl.SSLSocket):
    """SSLSocket that checks the peer certificate against a pin after handshake.

    The expected fingerprint is set on per-context subclasses created by
    create_ssl_context().
    """

    expected_fingerprint: str = ""

    def do_handshake(self, block: bool = False) -> None:
        super().do_handshake(block)
        der = self.getpeercert(binary_form=True)
        actual = certificate_fingerprint(der) if der else ""
        if actual != self.expected_fingerprint:
            raise CertificatePinError(self.expected_fingerprint, actual)


def create_ssl_context(target: SinkTarget) -> ssl.SSLContext:
    """Create the SSL context for a collector target.

    Args:
        target: HttpCollector sink target.

    Returns:
        Configured SSLContext.

    Raises:
        ConfigurationError: If the CA bundle or pin is unusable.
    """
    policy = target.trust_policy

    if policy is TrustPolicy.STRICT:
        try:
            return ssl.create_default_context(cafile=target.ca_bundle)
        except (ssl.SSLError, OSError) as e:
            raise ConfigurationError(
                f"Cannot load CA bundle: {e}", config_key="collector.ca_bundle"
            )

    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE

    if policy is TrustPolicy.TRUST_ALL:
        logger.warning(
            "Collector certificate validation is disabled (TrustAll). "
            "Do not use this setting in production."
        )
        return context

    if not target.pinned_fingerprint:
        raise ConfigurationError(
            "PinnedFingerprint policy requires a fingerprint",
            config_key="collector.pinned_fingerprint",
        )
    try:
        expected = normalize_fingerprint(target.pinned_fingerprint)
    except ValueError as e:
        raise ConfigurationError(str(e), config_key="collector.pinned_fingerprint")

    context.sslsocket_class = type(
        "PinnedSSLSocket",
        (PinnedSSLSocket,),
        {"expected_fingerprint": expected},
    )
    return context
