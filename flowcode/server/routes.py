"""
Conversion REST routes.

All routes are mounted under /api by main.py.  The converter registry is
built once and shared read-only by every request.
"""
from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from flowcode.context import CodeStyle, GenerationContext, ModuleStyle, QuoteStyle, TargetLanguage
from flowcode.converters import default_registry
from flowcode.errors import DocumentError
from flowcode.pipeline import convert_flow, validate_flow

logger = getLogger(__name__)

router = APIRouter()
registry = default_registry()


# ── Request bodies ────────────────────────────────────────────────────────────

class StyleBody(BaseModel):
    indent_size: Optional[int] = None
    quotes: QuoteStyle         = QuoteStyle.SINGLE
    semicolons: bool           = True
    trailing_commas: bool      = True


class ConvertRequest(BaseModel):
    flow: Dict[str, Any]
    target: TargetLanguage        = TargetLanguage.TYPESCRIPT
    module_style: ModuleStyle     = ModuleStyle.ESM
    include_tracing: bool         = False
    include_tests: bool           = False
    include_docs: bool            = True
    environment: Dict[str, str]   = Field(default_factory=dict)
    style: StyleBody              = Field(default_factory=StyleBody)
    project_name: str             = "flow"

    def to_context(self) -> GenerationContext:
        return GenerationContext(
            target=self.target,
            module_style=self.module_style,
            include_tracing=self.include_tracing,
            include_tests=self.include_tests,
            include_docs=self.include_docs,
            environment=self.environment,
            code_style=CodeStyle(
                indent_size=self.style.indent_size,
                quotes=self.style.quotes,
                semicolons=self.style.semicolons,
                trailing_commas=self.style.trailing_commas,
            ),
            project_name=self.project_name,
        )


class ValidateRequest(BaseModel):
    flow: Dict[str, Any]


# ── Response bodies ───────────────────────────────────────────────────────────

class ConvertResponse(BaseModel):
    success: bool
    graph_name: str
    source: Optional[str]      = None
    packages: List[str]        = Field(default_factory=list)
    test_source: Optional[str] = None
    report: Dict[str, Any]


# ── POST /convert ─────────────────────────────────────────────────────────────

@router.post("/convert", response_model=ConvertResponse)
async def convert(body: ConvertRequest) -> Dict[str, Any]:
    try:
        result = convert_flow(body.flow, body.to_context(), registry=registry)
    except DocumentError as exc:
        logger.info("rejected flow document: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return result.to_dict()


# ── POST /validate ────────────────────────────────────────────────────────────

@router.post("/validate")
async def validate(body: ValidateRequest) -> Dict[str, Any]:
    try:
        report = validate_flow(body.flow, registry=registry)
    except DocumentError as exc:
        logger.info("rejected flow document: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return report.to_dict()


# ── GET /converters ───────────────────────────────────────────────────────────

@router.get("/converters")
async def list_converters() -> Dict[str, Any]:
    return {
        "converters": registry.describe(),
        "statistics": registry.statistics(),
    }
