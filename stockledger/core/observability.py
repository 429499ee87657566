"""
Structured logging and the HTTP error envelope.

Every log line is one JSON object. ``log_event`` is the way services emit them;
the request middleware stamps each line with the request id it assigns (or
echoes from ``X-Request-ID``) so stock mutations can be traced back to a call.

All error responses share one shape::

    {"error": {"code", "message", "request_id", "path", "details"}}
"""

import json
import logging
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stockledger.core.config import settings
from stockledger.core.errors import StockLedgerError

LOGGER_NAME = "stockledger"
REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
logger = logging.getLogger(LOGGER_NAME)

_HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    503: "storage_error",
}


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()
        if record.exc_info:
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_observability() -> None:
    if any(isinstance(handler.formatter, JsonLogFormatter) for handler in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logger.addHandler(handler)
    logger.setLevel(settings.log_level.upper())
    logger.propagate = False


def get_request_id() -> str:
    return request_id_ctx.get()


def log_event(event: str, *, level: int = logging.INFO, exc_info: bool = False, **fields: Any) -> None:
    logger.log(level, {"event": event, "request_id": get_request_id(), **fields}, exc_info=exc_info)


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id()


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "code": code,
        "message": message,
        "request_id": _request_id_for(request),
        "path": request.url.path,
        "details": details,
    }
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        slow = duration_ms >= settings.slow_request_ms
        log_event(
            "request.slow" if slow else "request",
            level=logging.WARNING if slow else logging.INFO,
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        request_id_ctx.reset(token)


async def unhandled_exception_handler(request: Request, exc: Exception):
    log_event(
        "unhandled_exception",
        level=logging.ERROR,
        exc_info=True,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return error_response(request, status_code=500, code="internal_error", message="Internal server error")


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, str):
        message, details = exc.detail, None
    else:
        message, details = "HTTP error", exc.detail
    return error_response(
        request,
        status_code=exc.status_code,
        code=_HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        message=message,
        details=details,
        headers=exc.headers,
    )


async def stock_ledger_exception_handler(request: Request, exc: StockLedgerError):
    log_event(
        "domain_error",
        level=logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        path=request.url.path,
        code=exc.code,
        details=exc.details,
    )
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


def _validation_issue(err: dict[str, Any]) -> dict[str, Any]:
    location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
    return {
        "field": ".".join(location) or "body",
        "message": err.get("msg", "Invalid value"),
        "type": err.get("type"),
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request,
        status_code=422,
        code="validation_error",
        message="Validation failed",
        details=[_validation_issue(err) for err in exc.errors()],
    )
