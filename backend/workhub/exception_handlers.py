from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from workhub.errors import AppError, error_response

logger = logging.getLogger("errors")


def _with_correlation(request: Request, details: Dict[str, Any]) -> Dict[str, Any]:
    cid = getattr(request.state, "correlation_id", None)
    if cid and "correlation_id" not in details:
        details["correlation_id"] = cid
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:  # type: ignore[override]
        details = exc.details.copy() if isinstance(exc.details, dict) else {}
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.code, exc.message, _with_correlation(request, details)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore[override]
        details: Dict[str, Any] = {"errors": jsonable_encoder(exc.errors())}
        return JSONResponse(
            status_code=422,
            content=error_response(
                "validation_error",
                "Request validation failed",
                _with_correlation(request, details),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore[override]
        codes = {401: "unauthorized", 403: "forbidden", 404: "not_found"}
        code = codes.get(exc.status_code, "http_error")
        detail: Any = exc.detail
        if isinstance(detail, str):
            message = detail
            details: Dict[str, Any] = {}
        elif isinstance(detail, dict):
            message = detail.get("message", "HTTP error")
            details = dict(detail)
        else:
            message = "HTTP error"
            details = {}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(code, message, _with_correlation(request, details)),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore[override]
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("internal_error", "Unexpected server error", _with_correlation(request, {})),
        )
