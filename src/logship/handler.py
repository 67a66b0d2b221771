"""Stdlib logging bridge.

Routes records from Python's ``logging`` module (web framework, server and
library loggers) through a LoggerPipeline, so they are enriched and shipped
like records emitted through the pipeline directly.

Example:
    >>> pipeline = LoggerPipeline.from_config(PipelineConfig.from_env())
    >>> attach_to_logging(pipeline)
    >>> logging.getLogger("uvicorn.access").info("GET /weatherforecast 200")
"""

import logging
from typing import Any, Dict, Optional

from logship.formatting import SOURCE_CONTEXT
from logship.models import Level
from logship.pipeline import LoggerPipeline
from logship.sinks.collector import in_delivery

# Records from these loggers are never forwarded, and neither is anything
# logged on a collector thread while it delivers (httpx request lines).
INTERNAL_LOGGER = "logship"


class PipelineHandler(logging.Handler):
    """logging.Handler that forwards records to a LoggerPipeline.

    The rendered %-style message becomes the template (with braces escaped),
    the logger name becomes the SourceContext property and any ``extra``
    fields become properties.
    """

    # Attributes every LogRecord has; everything else came from ``extra``.
    STANDARD_FIELDS = {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }

    def __init__(self, pipeline: LoggerPipeline, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.pipeline = pipeline

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == INTERNAL_LOGGER or record.name.startswith(INTERNAL_LOGGER + "."):
            return
        if in_delivery():
            return

        try:
            message = record.getMessage()
            template = message.replace("{", "{{").replace("}", "}}")
            self.pipeline.write(
                Level.from_logging_level(record.levelno),
                template,
                args=self._extract_properties(record),
                exc_info=record.exc_info,
            )
        except Exception:
            self.handleError(record)

    def _extract_properties(self, record: logging.LogRecord) -> Dict[str, Any]:
        properties: Dict[str, Any] = {SOURCE_CONTEXT: record.name}
        for key, value in record.__dict__.items():
            if key not in self.STANDARD_FIELDS and not key.startswith("_"):
                properties[key] = value
        return properties


def attach_to_logging(
    pipeline: LoggerPipeline,
    logger: Optional[logging.Logger] = None,
    level: int = logging.NOTSET,
) -> PipelineHandler:
    """Attach a PipelineHandler to a logger (default: the root logger).

    Returns:
        The installed handler, so callers can remove it later.
    """
    target = logger or logging.getLogger()
    handler = PipelineHandler(pipeline, level)
    target.addHandler(handler)
    return handler
