"""
Structured logging for CertVault.

One JSON object per line, so issuance and verification events can be
searched by ``request_id``, ``certificate_id`` or ``pdf_path`` in any log
aggregator. A plain text format is available for local runs and the CLI.

Example usage:
    >>> from core.logging import get_logger, setup_logging
    >>> setup_logging(level="INFO", format_type="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("Certificate issued", extra={"certificate_id": "6f1c..."})
"""

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_LOGGER = "certvault.requests"

# Paths excluded from request logging
SKIP_PATHS = frozenset(["/health"])

# Standard LogRecord attributes; everything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Emitted first, in this order, when present
_LEADING_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "client_ip", "user")

# Appended to text-format lines when present
_TEXT_FIELDS = ("request_id", "certificate_id", "pdf_path")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    Render a log record as a single JSON line.

    Fixed keys are ``time`` (UTC ISO-8601), ``level``, ``logger`` and
    ``msg``; request context comes next, then any other ``extra`` field.
    Values that are not JSON types are written with ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        extra = _extra_fields(record)
        for key in _LEADING_FIELDS:
            if key in extra:
                entry[key] = extra.pop(key)
        entry.update(extra)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines with the certificate identifiers appended."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{key}={getattr(record, key)}" for key in _TEXT_FIELDS if hasattr(record, key)
        )
        return f"{line} [{context}]" if context else line


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per request and propagate a request id.

    An inbound ``X-Request-ID`` is reused, otherwise a new one is minted.
    It is stored on ``request.state.request_id`` for handlers and echoed on
    the response. ``/health`` gets an id but no log line. The actor id is
    taken from ``request.state.actor``, which the auth guards set.

    Example:
        >>> app = FastAPI()
        >>> app.add_middleware(RequestLoggingMiddleware)
    """

    def __init__(self, app, logger_name: str = REQUEST_LOGGER):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        if request.url.path in SKIP_PATHS:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={**self._fields(request, 500, started), "error": str(e)},
                exc_info=True,
            )
            raise

        self.logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra=self._fields(request, response.status_code, started),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _fields(self, request: Request, status: int, started: float) -> Dict[str, Any]:
        return {
            "request_id": request.state.request_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - started) * 1000),
            "client_ip": self._get_client_ip(request),
            "user": self._actor_id(request),
        }

    @staticmethod
    def _actor_id(request: Request) -> str:
        actor = getattr(request.state, "actor", None)
        return str(actor.id) if actor is not None and actor.id else "-"

    def _get_client_ip(self, request: Request) -> str:
        """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"


def setup_logging(level: str = "INFO", format_type: str = "json",
                  logger_name: Optional[str] = None,
                  stream: Optional[TextIO] = None) -> None:
    """
    Install a single handler on the root logger (or on ``logger_name``).

    Args:
        level: Logging level name; unknown names fall back to INFO
        format_type: ``json`` or ``text``
        logger_name: Configure this logger only, without propagation
        stream: Output stream (defaults to stdout)

    Example:
        >>> setup_logging(level="DEBUG", format_type="text", stream=sys.stderr)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    handler.setLevel(numeric_level)

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    if logger_name:
        logger.propagate = False

    # Replace rather than stack handlers on repeated calls
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: str, message: str,
                     request: Optional[Request] = None, **fields: Any) -> None:
    """
    Log ``message`` with ``fields`` plus the request id, path, method and
    client address of ``request`` when one is given.

    Example:
        >>> log_with_context(logger, "info", "Batch issued", request=request, count=12)
    """
    extra = dict(fields)
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            extra["request_id"] = request_id
        extra["path"] = request.url.path
        extra["method"] = request.method
        if request.client:
            extra["client_ip"] = request.client.host

    getattr(logger, level.lower(), logger.info)(message, extra=extra)
