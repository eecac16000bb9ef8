from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from mockable.core.config import load_settings
from mockable.core.generators.module_gen import generate_mock_module
from mockable.core.model import Diagnostic

router = APIRouter(prefix="/api/v1/mocks", tags=["mocks"])


class GenerateRequest(BaseModel):
    source: str = Field(..., min_length=1)
    module: str = Field(..., min_length=1)
    force_portable_lock: Optional[bool] = None


class GenerateResponse(BaseModel):
    module: str
    mocks: List[str]
    text: str


class DiagnosticsResponse(BaseModel):
    module: str
    diagnostics: List[Diagnostic]


@router.post("/generate", response_model=GenerateResponse, responses={422: {"model": DiagnosticsResponse}})
def generate(req: GenerateRequest):
    try:
        result = generate_mock_module(
            req.source,
            req.module,
            load_settings(),
            force_portable_lock=req.force_portable_lock,
            filename=f"{req.module}.py",
        )
    except SyntaxError as exc:
        return JSONResponse(
            status_code=400,
            content={"detail": f"syntax error at line {exc.lineno}: {exc.msg}"},
        )

    if not result.ok:
        body = DiagnosticsResponse(module=req.module, diagnostics=result.diagnostics)
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    return GenerateResponse(
        module=result.module,
        mocks=[m.mock_name for m in result.mocks if m.mock_name],
        text=result.text,
    )
