from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from mockable.core.observability.metrics import inc_http

log = logging.getLogger("mockable.request")

REQUEST_ID_HEADER = "X-Request-Id"
REQUEST_ID_STATE_KEY = "request_id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, counts it and logs one line per API call."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        setattr(request.state, REQUEST_ID_STATE_KEY, rid)

        start = time.time()
        response: Response = await call_next(request)
        dur_ms = int((time.time() - start) * 1000)

        response.headers[REQUEST_ID_HEADER] = rid
        inc_http(request.method, request.url.path, response.status_code)

        if request.url.path.startswith("/api/"):
            log.info(
                "%s",
                {
                    "event": "request",
                    "request_id": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": dur_ms,
                },
            )
        return response
