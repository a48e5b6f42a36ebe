"""
Structured Logging with Correlation IDs

Every line is one JSON object: a category for filtering, the request's
correlation id and, where known, the acting user and the assignment or
student the event is about.
"""

import functools
import json
import logging
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import BaseModel, Field

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class LogCategory(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    DATABASE = "database"
    SECURITY = "security"
    AUTHENTICATION = "authentication"
    ERROR = "error"
    BUSINESS = "business"
    STATISTICS = "statistics"
    SCHEDULER = "scheduler"
    EXTERNAL_SERVICE = "external_service"
    SYSTEM = "system"


# ============================================================================
# LOG ENTRY
# ============================================================================


class LogEntry(BaseModel):
    """One JSON log line"""

    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    level: str
    category: str
    logger: str
    message: str
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None

    # Who and what
    user_id: Optional[str] = None
    assignment_id: Optional[str] = None
    student_id: Optional[str] = None
    event: Optional[str] = None

    # HTTP
    request_method: Optional[str] = None
    request_path: Optional[str] = None
    client_ip: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[float] = None

    # Failures
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    security_event: Optional[str] = None
    severity: Optional[str] = None

    extra: Dict[str, Any] = Field(default_factory=dict)


class JSONLineFormatter(logging.Formatter):
    """Renders records from StructuredLogger as-is and wraps plain records (uvicorn, sqlalchemy)"""

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, "entry", None)
        if entry is not None:
            return entry.model_dump_json(exclude_none=True)

        fallback = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "category": LogCategory.SYSTEM.value,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }
        if record.exc_info:
            fallback["error_stack"] = self.formatException(record.exc_info)
        return json.dumps(fallback)


# ============================================================================
# LOGGER
# ============================================================================


class StructuredLogger:
    def __init__(self, name: str, level: str = "INFO"):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.handlers = []

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONLineFormatter())
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def log(self, level: int, message: str, category: str = LogCategory.SYSTEM,
            exception: Optional[Exception] = None, **context):
        if not self.logger.isEnabledFor(level):
            return
        if exception is not None:
            context["error_type"] = type(exception).__name__
            context["error_message"] = str(exception)
            context["error_stack"] = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        context.setdefault("correlation_id", correlation_id_var.get())
        context.setdefault("request_id", request_id_var.get())

        entry = LogEntry(
            level=logging.getLevelName(level),
            category=getattr(category, "value", category),
            logger=self.name,
            message=message,
            **context,
        )
        self.logger.log(level, message, extra={"entry": entry})

    def debug(self, message: str, category: str = LogCategory.SYSTEM, **context):
        self.log(logging.DEBUG, message, category, **context)

    def info(self, message: str, category: str = LogCategory.SYSTEM, **context):
        self.log(logging.INFO, message, category, **context)

    def warning(self, message: str, category: str = LogCategory.SYSTEM, **context):
        self.log(logging.WARNING, message, category, **context)

    def error(self, message: str, category: str = LogCategory.ERROR, exception: Optional[Exception] = None,
              **context):
        self.log(logging.ERROR, message, category, exception=exception, **context)

    def security(self, message: str, event_type: str, severity: str = "medium", **context):
        """Permission denials and failed logins"""
        self.log(logging.WARNING, message, LogCategory.SECURITY, security_event=event_type, severity=severity,
                 **context)

    def business(self, event: str, message: str, user_id: Optional[str] = None,
                 assignment_id: Optional[str] = None, student_id: Optional[str] = None, **details):
        """Domain events: assignments created or deleted, progress submitted, stats rebuilt"""
        self.log(
            logging.INFO,
            message,
            LogCategory.BUSINESS,
            event=event,
            user_id=user_id,
            assignment_id=assignment_id,
            student_id=student_id,
            extra=details,
        )


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str, level: Optional[str] = None) -> StructuredLogger:
    if name not in _loggers:
        if level is None:
            from config import settings

            level = settings.LOG_LEVEL
        _loggers[name] = StructuredLogger(name, level)
    return _loggers[name]


# ============================================================================
# REQUEST MIDDLEWARE
# ============================================================================


async def log_request_middleware(request: Request, call_next):
    """Tag the request with correlation and request ids and log it with timing"""
    correlation_id = request.headers.get("X-Correlation-ID") or f"corr_{uuid.uuid4().hex[:16]}"
    request_id = f"req_{uuid.uuid4().hex[:8]}"
    correlation_id_var.set(correlation_id)
    request_id_var.set(request_id)
    request.state.correlation_id = correlation_id
    request.state.request_id = request_id

    logger = get_logger("api.request")
    http = {"request_method": request.method, "request_path": request.url.path}
    logger.info(
        f"Incoming {request.method} {request.url.path}",
        LogCategory.REQUEST,
        client_ip=request.client.host if request.client else None,
        **http,
    )

    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {e}",
            exception=e,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            **http,
        )
        raise

    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"Response {response.status_code} for {request.method} {request.url.path}",
        LogCategory.RESPONSE,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
        user_id=getattr(request.state, "user_id", None),
        **http,
    )
    return response


# ============================================================================
# HELPERS
# ============================================================================


def log_execution(category: str = LogCategory.BUSINESS):
    """Log a function's completion or failure with its duration"""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {func.__name__}",
                    category=category,
                    exception=e,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
                raise
            logger.info(
                f"Completed {func.__name__}",
                category=category,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return result

        return wrapper

    return decorator


def log_authentication_event(
    event_type: str,
    user_id: Optional[str] = None,
    success: bool = True,
    details: Optional[Dict] = None,
):
    logger = get_logger("auth")
    context = {"event": event_type, "user_id": user_id, "extra": details or {}}
    if success:
        logger.info(f"Authentication succeeded: {event_type}", LogCategory.AUTHENTICATION, **context)
    else:
        logger.warning(f"Authentication failed: {event_type}", LogCategory.AUTHENTICATION, **context)


def configure_logging(level: str = "INFO"):
    """Route stdlib loggers (uvicorn, sqlalchemy) through the JSON formatter"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not root.handlers:
        root.addHandler(logging.StreamHandler(sys.stdout))
    for handler in root.handlers:
        handler.setFormatter(JSONLineFormatter())

    get_logger("system").info("Logging configured", extra={"level": level})
