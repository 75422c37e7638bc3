"""
Analytics API Endpoints

Runs the analytics pipeline over an uploaded transaction table.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from predictiq.config import get_settings
from predictiq.errors import AnalyticsError, ErrorKind
from predictiq.pipeline import MODULES_BY_MODE, AnalysisMode, run_pipeline

router = APIRouter()
logger = structlog.get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INSUFFICIENT_DATA: 422,
    ErrorKind.INVALID_DATA_FORMAT: 422,
    ErrorKind.CONFIGURATION_ERROR: 422,
    ErrorKind.UNSUPPORTED_DATA_TYPE: 400,
}


class ProcessRequest(BaseModel):
    """Upload to analyze"""
    records: List[Any] = Field(default_factory=list, description="Raw rows of the uploaded table")
    mode: str = Field(default=AnalysisMode.FULL.value, description="full, sales, customer or inventory")
    config: Optional[Dict[str, Any]] = Field(default=None, description="Per-call pipeline options")


class ModeInfo(BaseModel):
    """Modules run by one mode"""
    mode: str
    modules: List[str]


def _error_response(mode: str, error: AnalyticsError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(error.kind, 422),
        content={
            "type": mode,
            "processed": False,
            "error": error.kind.value,
            "message": error.message,
        },
    )


@router.post("/process")
def process_upload(request: ProcessRequest) -> JSONResponse:
    """
    Analyze an uploaded table.

    Succeeds with partial results when individual modules lack data; the
    failed modules are listed under ``results.errors``.
    """
    max_records = get_settings().api.max_records
    if len(request.records) > max_records:
        return JSONResponse(
            status_code=413,
            content={
                "type": request.mode,
                "processed": False,
                "error": "payload_too_large",
                "message": f"At most {max_records:,} records can be analyzed per request.",
            },
        )

    try:
        result = run_pipeline(request.records, config=request.config, mode=request.mode)
    except AnalyticsError as e:
        logger.warning(
            "Processing rejected",
            mode=request.mode,
            kind=e.kind.value,
            error=e.message,
        )
        return _error_response(request.mode, e)

    return JSONResponse(content={
        "type": result.mode.value,
        "processed": True,
        "results": result.to_dict(),
    })


@router.get("/modes", response_model=List[ModeInfo])
async def list_modes() -> List[ModeInfo]:
    """Supported processing modes and the modules each one runs"""
    return [
        ModeInfo(mode=mode.value, modules=list(MODULES_BY_MODE[mode]))
        for mode in AnalysisMode
    ]
