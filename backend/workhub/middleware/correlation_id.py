from __future__ import annotations

import logging
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from workhub.errors import error_response

logger = logging.getLogger("correlation_id")

CORRELATION_HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        incoming = request.headers.get(CORRELATION_HEADER)
        cid = incoming.strip() if incoming and incoming.strip() else str(uuid.uuid4())

        request.state.correlation_id = cid

        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception("Request %s failed before a response was produced", cid)
            response = JSONResponse(
                status_code=500,
                content=error_response("internal_error", "Unexpected server error", {"correlation_id": cid}),
            )

        response.headers[CORRELATION_HEADER] = cid
        return response
