# ─────────────────────────────────────────────────────────────────
# errors.py — Response Envelope & Error Handling
#
# Every response the API sends has the same shape:
#     {"success": bool, "message"?: str, "data"?: any}
#
# Handlers raise the ApiError subclasses below for expected
# failures. Anything else bubbles up to the catch-all handler,
# which logs the traceback and answers with a generic 500.
# ─────────────────────────────────────────────────────────────────

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("errors")


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Builds a success envelope."""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(ApiError):
    status_code = 400


class Conflict(ApiError):
    # Duplicate email / username / nodeId
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


def _fail(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
    return ", ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    """Attaches the envelope-producing handlers to an app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.info(f"{request.method} {request.url.path} → {exc.status_code}: {exc.message}")
        return _fail(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _fail(404, "Route not found")
        return _fail(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.info(f"{request.method} {request.url.path} → 400: {_describe(errors)}")
        return _fail(400, _describe(errors), errors=[
            {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
            for e in errors
        ])

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        extra = {}
        if app.state.settings.debug:
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return _fail(500, "Something went wrong!", **extra)
