# slashride/infra/logging_config.py
"""
stdout logging: JSON lines in production, a colored single line in dev.

Slash-command context (chat user, ride, request id, command word) travels as
record attributes set through ``LogContext``. User ids and coordinates are
masked before they reach a log line.
"""
import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("user_id", "ride_id", "request_id", "command")

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


def _context_of(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
            **_context_of(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        if "user_id" in context:
            context["user_id"] = mask_user_id(str(context["user_id"]))
        tags = " ".join(f"{key}={value}" for key, value in context.items())

        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        color = _LEVEL_COLORS.get(record.levelname, _RESET)
        line = f"{stamp} {color}{record.levelname:<8}{_RESET} {record.name}"
        if tags:
            line += f" [{tags}]"
        line += f" {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger(__name__).debug(f"Logging configured: level={level}, json={use_json}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext(logging.LoggerAdapter):
    """
    Logger bound to one slash command.

        log_ctx = LogContext(logger, user_id=user_id, command="ride")
        log_ctx.bind(ride_id=ride.id).info("Surge %s in effect", multiplier)
    """

    def __init__(self, logger: logging.Logger, **context):
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def bind(self, **context) -> "LogContext":
        return LogContext(self.logger, **{**self.extra, **context})

    def process(self, msg, kwargs):
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def mask_user_id(user_id: str) -> str:
    """``U012ABCDEF`` -> ``U01****EF``"""
    if len(user_id) <= 6:
        return "***"
    return f"{user_id[:3]}****{user_id[-2:]}"


def mask_coordinates(lat: float, lng: float) -> str:
    """One decimal place, roughly 10 km."""
    return f"{lat:.1f}**, {lng:.1f}**"
