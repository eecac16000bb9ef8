from __future__ import annotations

from fastapi import FastAPI

from mockable import __version__
from mockable.api.endpoints import health
from mockable.api.endpoints import metrics as metrics_ep
from mockable.api.endpoints.mocks import router as mocks_router
from mockable.api.middleware.error_shaping import SafeErrorMiddleware
from mockable.api.middleware.request_id import RequestIdMiddleware

app = FastAPI(
    title="mockable API",
    version=__version__,
)

# ------------------------------------------------------------
# Middleware stack
# Starlette reverses add_middleware order: the LAST call is the OUTERMOST wrapper.
#   SafeErrorMiddleware -> RequestIdMiddleware -> handler
# ------------------------------------------------------------
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SafeErrorMiddleware)

app.include_router(health.router)
app.include_router(metrics_ep.router)
app.include_router(mocks_router)
