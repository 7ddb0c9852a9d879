import logging
import time
from typing import Any, Dict
import json

logger = logging.getLogger(__name__)

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
}


def setup_logging(log_level: str = "INFO", log_format: str = "text"):
    """
    Configure root logging

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR
        log_format: text or json
    """

    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={log_level}, format={log_format}")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logs"""

    def format(self, record):
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Fields passed through `extra`
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


class ErrorTracker:
    """Keeps error counts and a short history for operators"""

    def __init__(self):
        self.error_counts = {}
        self.last_errors = []
        self.max_history = 100

    def track_error(
        self, error_type: str, error_message: str, context: Dict[str, Any] = None
    ):
        """Record an error occurrence"""
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_entry = {
            "timestamp": time.time(),
            "type": error_type,
            "message": error_message,
            "context": context or {},
        }

        self.last_errors.append(error_entry)

        if len(self.last_errors) > self.max_history:
            self.last_errors = self.last_errors[-self.max_history :]

        logger.warning(
            f"Error tracked: {error_type}",
            extra={
                "error_type": error_type,
                "error_message": error_message,
                "total_count": self.error_counts[error_type],
                "context": context,
            },
        )

    def get_stats(self) -> Dict[str, Any]:
        """Error statistics"""
        return {
            "error_counts": self.error_counts.copy(),
            "total_errors": sum(self.error_counts.values()),
            "unique_error_types": len(self.error_counts),
            "last_errors": self.last_errors[-10:],
        }

    def reset_stats(self):
        self.error_counts.clear()
        self.last_errors.clear()
        logger.info("Error tracking stats reset")


# Process-wide tracker
error_tracker = ErrorTracker()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_business_event(
    event: str, entity_type: str, entity_id: Any, details: Dict[str, Any] = None
):
    """
    Log a domain event

    Args:
        event: Event name (booking_created, payment_completed, ...)
        entity_type: gym_booking, trainer_booking, trainer
        entity_id: Entity ID
        details: Extra context
    """
    logger.info(
        f"Business event: {event}",
        extra={
            "event": event,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
            "category": "business_event",
        },
    )
