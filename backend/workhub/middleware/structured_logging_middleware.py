"""Structured JSON access log.

Every request logs one line:
{
  request_id,
  correlation_id,
  user_id,
  path,
  method,
  status_code,
  latency_ms
}

4xx responses log at warning level and 5xx at error. The request id is
echoed in the X-Request-Id response header.
"""
from __future__ import annotations

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from workhub.auth import IDENTITY_HEADER

logger = logging.getLogger("structured_access")


def _log(entry: dict) -> None:
    status_code = entry["status_code"]
    if status_code >= 500:
        logger.error(json.dumps(entry))
    elif status_code >= 400:
        logger.warning(json.dumps(entry))
    else:
        logger.info(json.dumps(entry))


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log structured JSON for every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:12]
        start = time.monotonic()
        request.state.request_id = request_id

        entry = {
            "request_id": request_id,
            "correlation_id": getattr(request.state, "correlation_id", None),
            "user_id": request.headers.get(IDENTITY_HEADER, ""),
            "path": request.url.path,
            "method": request.method,
        }

        try:
            response = await call_next(request)
        except Exception:
            entry["status_code"] = 500
            entry["latency_ms"] = round((time.monotonic() - start) * 1000, 2)
            _log(entry)
            raise

        entry["status_code"] = response.status_code
        entry["latency_ms"] = round((time.monotonic() - start) * 1000, 2)
        _log(entry)

        response.headers["X-Request-Id"] = request_id
        return response
