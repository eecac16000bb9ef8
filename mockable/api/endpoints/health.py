from __future__ import annotations

from fastapi import APIRouter
from starlette.responses import JSONResponse

from mockable.core.generators.module_gen import TEMPLATES_DIR
from mockable.core.observability.metrics import inc_named

router = APIRouter()


# ------------------------------------------------------------
# Unversioned health
# ------------------------------------------------------------
@router.get("/health/live")
async def live():
    inc_named("health_live")
    return {"status": "ok"}


# ------------------------------------------------------------
# Versioned health
# ------------------------------------------------------------
@router.get("/api/v1/health/live")
def liveness():
    inc_named("health_live")
    return {"status": "alive"}


@router.get("/api/v1/health/ready")
def readiness():
    """
    Readiness reflects ability to render mock modules: the module template
    must be present next to the installed package.
    """
    inc_named("health_ready")

    problems: list[str] = []
    if not (TEMPLATES_DIR / "mock_module.py.j2").is_file():
        problems.append(f"missing_template:{TEMPLATES_DIR}/mock_module.py.j2")

    if problems:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "problems": problems},
        )

    return {"status": "ready"}
