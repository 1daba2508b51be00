"""
Structured logging configuration for lineflux
"""
import logging
import json
import sys
import os
from datetime import datetime, timezone

# LogRecord attributes that are not user supplied extras
_RECORD_ATTRIBUTES = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message', 'taskName',
])


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging"""

    def __init__(self, service_name: str = "lineflux", include_trace: bool = False):
        super().__init__()
        self.service_name = service_name
        self.include_trace = include_trace

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        # Add thread and process info for debugging
        if self.include_trace:
            log_entry.update({
                "thread": record.thread,
                "thread_name": record.threadName,
                "process": record.process,
                "filename": record.filename,
                "function": record.funcName,
                "line_number": record.lineno,
            })

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str)


def setup_logging(
    service_name: str = "lineflux",
    level: str = "INFO",
    structured: bool = True,
    include_trace: bool = False
) -> None:
    """
    Configure application logging.

    The library itself only creates module loggers; applications call this
    once at startup. LOG_LEVEL overrides `level`.
    """
    log_level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if structured:
        formatter = StructuredFormatter(service_name=service_name, include_trace=include_trace)
    else:
        # Use traditional formatter for development
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level))

    # Reduce noise
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# Structured logging helpers
def log_write_operation(logger: logging.Logger, database: str, line_count: int,
                        byte_count: int, duration_ms: float, success: bool, **kwargs):
    """Log a synchronous write with structured data"""
    logger.info(
        f"Write to '{database}' completed" if success else f"Write to '{database}' failed",
        extra={
            "event_type": "write_operation",
            "database": database,
            "line_count": line_count,
            "byte_count": byte_count,
            "duration_ms": duration_ms,
            "success": success,
            **kwargs
        }
    )


def log_query_execution(logger: logging.Logger, query: str, database: str, **kwargs):
    """Log query submission with structured data"""
    # Truncate long queries for logging
    query_snippet = query[:200] + "..." if len(query) > 200 else query

    logger.info(
        "Query submitted",
        extra={
            "event_type": "query_execution",
            "query_snippet": query_snippet,
            "database": database,
            **kwargs
        }
    )


class LoggingContextManager:
    """Context manager for adding structured logging context"""

    def __init__(self, **context_data):
        self.context_data = context_data
        self.old_factory = None

    def __enter__(self):
        self.old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = self.old_factory(*args, **kwargs)
            for key, value in self.context_data.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self.old_factory)


def with_logging_context(**context_data):
    """Context manager adding fields to every record logged inside it"""
    return LoggingContextManager(**context_data)
