"""Logging setup for the engine and the processes that host it."""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, List, MutableMapping, Optional, Tuple, Union

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes call sites pass through `extra=` that JSON output keeps
CONTEXT_FIELDS = (
    "correlation_id",
    "path",
    "locale",
    "tier",
    "stage",
    "action",
    "duration_ms",
    "function",
    "error",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with engine context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handlers(
    formatter: logging.Formatter, log_file: Optional[str], stream: Optional[IO[str]]
) -> List[logging.Handler]:
    console = logging.StreamHandler(stream or sys.stderr)
    handlers: List[logging.Handler] = [console]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_type: str = "json",
    enabled: bool = True,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure the root logger.

    Console output goes to stderr so CLI results on stdout stay parseable.
    Calling again replaces the previous configuration.

    Args:
        level: Level name; unknown names mean INFO
        log_file: Optional file that receives the same records
        format_type: "json" or "text"
        enabled: False silences logging entirely
        stream: Console stream override
    """
    if not enabled:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)

    formatter = JsonFormatter() if format_type == "json" else logging.Formatter(TEXT_FORMAT)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=_handlers(formatter, log_file, stream),
        force=True,
    )


class CorrelationAdapter(logging.LoggerAdapter):
    """Adds a fixed correlation id to every record it emits."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("correlation_id", self.extra["correlation_id"])
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(
    name: str, correlation_id: Optional[str] = None
) -> Union[logging.Logger, CorrelationAdapter]:
    """Module logger, wrapped to tag records when a correlation id is given."""
    logger = logging.getLogger(name)
    if correlation_id:
        return CorrelationAdapter(logger, {"correlation_id": correlation_id})
    return logger
