"""
Logging configuration with request_id correlation.
Structured logging for cloud log collectors.

PII Protection:
- Never log raw tokens, emails, SSNs, signatures or PDF payloads
- Use fingerprints (sha256[:8]) for correlation
"""
import hashlib
import logging
import sys
import uuid
import json
from contextvars import ContextVar
from typing import Optional
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def fingerprint(value: Optional[str], prefix: str = "") -> str:
    """
    Create a safe fingerprint for logging PII values.

    Example:
        fingerprint("secret_token_123", "tok_") -> "tok_a1b2c3d4"
    """
    if not value:
        return f"{prefix}none" if prefix else "none"
    fp = hashlib.sha256(value.encode()).hexdigest()[:8]
    return f"{prefix}{fp}" if prefix else fp


# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
subject_user_id_var: ContextVar[Optional[str]] = ContextVar("subject_user_id", default=None)
form_name_var: ContextVar[Optional[str]] = ContextVar("form_name", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_context(
    user_id: Optional[str] = None,
    subject_user_id: Optional[str] = None,
    form_name: Optional[str] = None,
) -> None:
    """
    Set logging context variables.

    Args:
        user_id: Authenticated caller UUID (safe to log)
        subject_user_id: UUID of the user whose documents are being processed
        form_name: Onboarding form key (e.g. "fw4", "i9")
    """
    if user_id:
        user_id_var.set(user_id)
    if subject_user_id:
        subject_user_id_var.set(subject_user_id)
    if form_name:
        form_name_var.set(form_name)


def clear_context() -> None:
    """Clear all context variables."""
    request_id_var.set(None)
    user_id_var.set(None)
    subject_user_id_var.set(None)
    form_name_var.set(None)


class CloudLoggingFormatter(logging.Formatter):
    """
    Formatter for structured JSON logs.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        user_id = user_id_var.get()
        if user_id:
            log_entry["user_id"] = user_id

        subject_user_id = subject_user_id_var.get()
        if subject_user_id:
            log_entry["subject_user_id"] = subject_user_id

        form_name = form_name_var.get()
        if form_name:
            log_entry["form_name"] = form_name

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_entry["data"] = record.extra_data

        return json.dumps(log_entry)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get() or "-"
        subject_user_id = subject_user_id_var.get()
        form_name = form_name_var.get()

        prefix = f"[{record.levelname}] [{request_id[:8] if request_id != '-' else '-'}]"
        if subject_user_id:
            prefix += f" [user:{subject_user_id[:8]}]"
        if form_name:
            prefix += f" [form:{form_name}]"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """
    Configure logging based on environment.
    - production: JSON structured logs
    - development: Human-readable format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if environment == "production":
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique request_id to each request.
    Also extracts the subject user id from the query string or path if present.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)

        subject = request.query_params.get("user_id")
        if not subject:
            path_parts = request.url.path.split("/")
            for i, part in enumerate(path_parts):
                if part == "user" and i + 1 < len(path_parts):
                    subject = path_parts[i + 1]
                    break
        if subject:
            subject_user_id_var.set(subject)

        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)
