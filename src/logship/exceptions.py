"""Custom exceptions for the log shipping pipeline.

This module defines the exception hierarchy for configuration, delivery
and serialization errors. Only configuration errors ever escape the
pipeline; the others are raised and handled inside the sinks.
"""

from typing import Optional


class LogshipError(Exception):
    """Base exception for all logship errors."""

    pass


class ConfigurationError(LogshipError):
    """Raised when pipeline configuration is missing or malformed."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        if config_key:
            super().__init__(f"{message} (config key: {config_key})")
        else:
            super().__init__(message)


class DeliveryError(LogshipError):
    """Raised when a record could not be delivered to the collector."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class CertificatePinError(DeliveryError):
    """Raised when the collector certificate does not match the pin."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Certificate fingerprint mismatch: expected {expected}, got {actual}"
        )


class SerializationError(LogshipError):
    """Raised when a record cannot be serialized to JSON."""

    pass
