from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from autodiag.diagnosis.errors import DiagnosisFailed


logger = logging.getLogger(__name__)


def _get_request_id(request: Request) -> Optional[str]:
    """
    request.state.request_id is set by RequestIdMiddleware; fall back to the
    inbound header when the middleware is not installed (router-only test apps).
    """
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return rid
    return request.headers.get("X-Request-Id")


def _error_response(status_code: int, code: str, message: str, request: Request) -> JSONResponse:
    rid = _get_request_id(request)
    payload: Dict[str, Any] = {"error": {"code": code, "message": message, "request_id": rid}}
    return JSONResponse(
        status_code=status_code,
        content=payload,
        headers={"X-Request-Id": rid} if rid else None,
    )


async def diagnosis_failed_handler(request: Request, exc: DiagnosisFailed) -> JSONResponse:
    """
    A classified diagnosis failure becomes the single user-visible message.
    """
    c = exc.classified
    return _error_response(c.status_code, c.code, c.message, request)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Normalize HTTPException into the global error schema.
    - detail as dict: {"code": "...", "message": "..."}  (preprocessing style)
    - detail as str: "..."                            (FastAPI default style)
    """
    code = "http_error"
    message = "Request failed"

    if isinstance(exc.detail, dict):
        code = str(exc.detail.get("code", code))
        message = str(exc.detail.get("message", message))
    elif isinstance(exc.detail, str):
        message = exc.detail

    return _error_response(exc.status_code, code, message, request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Short summary like: "file: Field required; code: ..."
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", []) if x != "body")
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else str(msg))

    message = "; ".join(parts) if parts else "Validation error"
    return _error_response(422, "validation_error", message, request)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error")
    return _error_response(500, "internal_error", "Internal server error", request)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DiagnosisFailed, diagnosis_failed_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
