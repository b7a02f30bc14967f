"""Unified `{code, message, detail}` error payloads and their FastAPI handlers."""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

ERROR_KEYS = frozenset({"code", "message", "detail"})

# Codes for errors raised by the framework itself (unknown route, wrong method).
STATUS_CODES = {
    400: "VALIDATION_ERROR",
    401: "AUTH_TOKEN_INVALID",
    403: "ROOM_NOT_MEMBER",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def api_error(*, code: str, message: str, detail: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"code": code, "message": message, "detail": detail or {}}


def error_payload(status_code: int, detail: Any) -> dict[str, Any]:
    """Pass unified payloads through; wrap anything else under a status-derived code."""
    if isinstance(detail, dict) and ERROR_KEYS <= set(detail):
        return detail
    return api_error(code=STATUS_CODES.get(status_code, "HTTP_ERROR"), message=str(detail))


async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.status_code, exc.detail),
        headers=exc.headers,
    )


async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are 400, listing the offending field paths."""
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
    payload = api_error(code="VALIDATION_ERROR", message="invalid request body", detail={"fields": fields})
    return JSONResponse(status_code=400, content=payload)
