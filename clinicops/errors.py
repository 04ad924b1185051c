"""
Uniform error envelope for every failed request.

    {"success": false,
     "error": {"code": "...", "message": "...", "details": ...},
     "timestamp": "...", "path": "/api/..."}
"""
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = structlog.get_logger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_code_for(status_code: int) -> str:
    if status_code >= 500:
        return "INTERNAL_ERROR"
    return ERROR_CODES.get(status_code, "BAD_REQUEST")


def error_response(request: Request, status_code: int, message: str, details: Optional[Any] = None, headers: Optional[dict] = None) -> JSONResponse:
    error = {"code": error_code_for(status_code), "message": message}
    if details is not None:
        error["details"] = details
    body = {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }
    log = logger.error if status_code >= 500 else logger.warning
    log("request_failed", method=request.method, path=request.url.path, status=status_code, code=error["code"], message=message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    details = None
    message = exc.detail
    if not isinstance(message, str):
        details = message
        message = "Request failed"
    return error_response(request, exc.status_code, message, details, headers=getattr(exc, "headers", None))


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, 422, "Validation failed", details=exc.errors())


def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(request, 429, f"Rate limit exceeded: {exc.detail}")


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
    return error_response(request, 500, "Internal server error")


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
