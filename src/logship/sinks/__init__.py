"""Delivery destinations for log records."""

from logship.sinks.base import Sink
from logship.sinks.collector import HttpCollectorSink
from logship.sinks.console import ConsoleSink

__all__ = ["ConsoleSink", "HttpCollectorSink", "Sink"]
