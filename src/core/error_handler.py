"""Centralized error handling and logging for the Corrector API.

This module provides:
- Correlation ids carried in a context variable across a request
- A structured logger that never writes user text or credentials
- The global exception handler and its middleware safety net
- Root logging setup (JSON in production, plain text elsewhere)

Streaming endpoints report failures inside the SSE stream; only errors
raised before a stream starts reach the handler below.
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import DomainError, InputTooLargeError, UpstreamError
from core.security_config import get_allowed_error_fields, is_sensitive_key
from schemas.api import ErrorResponse


_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

REDACTED = "[REDACTED]"


def get_correlation_id() -> str:
    """Return the current correlation id, creating one if none is set."""
    correlation_id = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Logger wrapper that attaches the correlation id and redacts fields.

    Keyword fields are passed as ``structured_data`` on the record. Keys
    matching ``SENSITIVE_KEYS`` are replaced with ``[REDACTED]``; callers log
    sizes such as ``input_chars`` instead of content.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _emit(
        self, level: int, message: str, fields: dict[str, Any], exc_info: bool = False
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        correlation_id = get_correlation_id()
        structured = {"correlation_id": correlation_id, **self._sanitize_data(fields)}

        # The JSON formatter already emits correlation_id as a field
        if get_settings().ENVIRONMENT != "production":
            message = f"[{correlation_id}] {message}"
        self.logger.log(
            level, message, extra={"structured_data": structured}, exc_info=exc_info
        )

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys redacted, recursively."""
        if not data:
            return {}
        return {
            key: REDACTED if is_sensitive_key(key) else self._sanitize_value(value)
            for key, value in data.items()
        }

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list | tuple):
            return [self._sanitize_value(item) for item in value]
        return value

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, message, kwargs, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Safety net: route anything that escapes the app to the global handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


@dataclass(frozen=True)
class _ErrorKind:
    status_code: int
    error_type: str
    message: str


_UPSTREAM = _ErrorKind(
    502, "upstream_error", "The text generation provider is unavailable"
)
_TOO_LARGE = _ErrorKind(413, "input_too_large", "The submitted text is too long")
_VALIDATION = _ErrorKind(422, "validation_error", "Invalid request data provided")
_DOMAIN = _ErrorKind(400, "domain_error", "The request could not be processed")
_INTERNAL = _ErrorKind(500, "internal_server_error", "An internal error occurred")


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build the ``ErrorResponse`` envelope with the fields ``environment`` allows."""
    allowed = get_allowed_error_fields(environment)
    optional = {
        "details": details,
        "traceback": traceback_str,
        "exception_type": exception_type,
        "validation_errors": validation_errors,
    }
    error_body: dict[str, Any] = {"correlation_id": correlation_id, "type": error_type}
    error_body.update(
        (field, value)
        for field, value in optional.items()
        if field in allowed and value is not None and value != {}
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error_body).model_dump(),
    )


def _respond(kind: _ErrorKind, environment: str, **fields: Any) -> JSONResponse:
    return _build_error_response(
        correlation_id=get_correlation_id(),
        error_type=kind.error_type,
        message=kind.message,
        environment=environment,
        status_code=kind.status_code,
        **fields,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map any exception to a sanitized ``ErrorResponse``.

    Production responses carry only the correlation id and error type; other
    environments add details, validation errors and tracebacks.
    """
    environment = get_settings().ENVIRONMENT

    if isinstance(exc, StarletteHTTPException):
        http_kind = _ErrorKind(
            exc.status_code, "http_error", "An HTTP error occurred"
        )
        return _respond(
            http_kind,
            environment,
            details={"detail": exc.detail},
            exception_type=exc.__class__.__name__,
        )

    if isinstance(exc, ValidationError | RequestValidationError):
        errors = exc.errors()
        structured_logger.warning(
            "Validation error", validation_error_count=len(errors)
        )
        return _respond(
            _VALIDATION,
            environment,
            validation_errors=[
                {"loc": err.get("loc"), "msg": err.get("msg"), "type": err.get("type")}
                for err in errors
            ],
        )

    if isinstance(exc, UpstreamError):
        structured_logger.error(
            "Upstream provider failure", upstream_status=exc.status_code
        )
        return _respond(
            _UPSTREAM, environment, details={"upstream_status": exc.status_code}
        )

    if isinstance(exc, InputTooLargeError):
        structured_logger.warning(
            "Input too large", input_chars=exc.length, limit=exc.limit
        )
        return _respond(_TOO_LARGE, environment, details={"limit": exc.limit})

    if isinstance(exc, DomainError):
        structured_logger.warning("Domain error", error_type=exc.__class__.__name__)
        return _respond(_DOMAIN, environment)

    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__
    )
    return _respond(
        _INTERNAL,
        environment,
        traceback_str="".join(traceback.format_exception(exc)).strip(),
        exception_type=exc.__class__.__name__,
    )


def setup_logging() -> None:
    """Install one root stdout handler; later calls are no-ops."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    environment = get_settings().ENVIRONMENT
    log_level = logging.DEBUG if environment == "development" else logging.INFO

    formatter: logging.Formatter
    if environment == "production":
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    if environment == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
