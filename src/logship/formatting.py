"""Console formatters for log records.

Two formats are available:

Text, one human-readable line per record:
    2024-01-15T10:30:45.123Z INFORMATION [weather.api] [trace=4bf92f3577b34da6] Received request

JSON, the same document the collector receives:
    {"timestamp": "2024-01-15T10:30:45.123456+00:00", "level": "Information", ...}
"""

from logship.models import LogRecord

SOURCE_CONTEXT = "SourceContext"


class TextFormatter:
    """Human-readable text formatter with optional trace context."""

    def __init__(self, include_trace_context: bool = True) -> None:
        """Initialize the text formatter.

        Args:
            include_trace_context: Include a truncated trace id in the output.
        """
        self.include_trace_context = include_trace_context

    def format(self, record: LogRecord) -> str:
        """Format the record as a single text line (plus traceback, if any)."""
        timestamp = record.timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        parts = [timestamp, record.level.value.upper().ljust(11)]

        source = record.properties.get(SOURCE_CONTEXT)
        if source:
            parts.append(f"[{source}]")

        if self.include_trace_context and record.trace_id:
            # Truncate for readability
            parts.append(f"[trace={record.trace_id[:16]}]")

        parts.append(record.render())

        result = " ".join(parts)

        if record.exception and record.exception.get("traceback"):
            result += "\n" + record.exception["traceback"].rstrip("\n")

        return result


class JsonFormatter:
    """JSON formatter producing the collector record schema."""

    def __init__(self, include_trace_context: bool = True) -> None:
        self.include_trace_context = include_trace_context

    def format(self, record: LogRecord) -> str:
        if self.include_trace_context:
            return record.to_json()

        stripped = LogRecord(
            timestamp=record.timestamp,
            level=record.level,
            message_template=record.message_template,
            properties=record.properties,
            exception=record.exception,
        )
        return stripped.to_json()
