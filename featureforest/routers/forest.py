"""Forest assembly API router."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from featureforest import config
from featureforest.errors import IngestionError
from featureforest.models import OrphanPolicy
from featureforest.rendering import forest_payload, render_json
from featureforest.services.forest_builder import build_forest

forest_router = APIRouter(prefix="/api/forest", tags=["forest"])
logger = logging.getLogger("featureforest.api")


class ForestRequest(BaseModel):
    content: str = Field(..., description="Feature log, one record per line")
    orphanPolicy: Optional[OrphanPolicy] = None
    checkSpans: Optional[bool] = None


def _error_detail(exc: IngestionError) -> dict[str, Any]:
    return {
        "error": exc.kind,
        "message": exc.message,
        "line": exc.line_number,
    }


@forest_router.post("")
async def assemble_forest(payload: ForestRequest):
    """Parse a feature log and return its program forest."""
    size = len(payload.content.encode("utf-8"))
    if size > config.MAX_REQUEST_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Content is {size} bytes; limit is {config.MAX_REQUEST_BYTES}",
        )

    try:
        result = build_forest(
            payload.content.splitlines(),
            source="request",
            orphan_policy=payload.orphanPolicy,
            check_spans=payload.checkSpans,
        )
    except IngestionError as exc:
        logger.info("Rejected feature log: %s", exc)
        raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc

    body = {
        "status": "ok",
        "recordCount": result.record_count,
        "programCount": result.program_count,
        "diagnostics": result.diagnostics,
        "programs": forest_payload(result.forest),
    }
    # Deep trees are past what the default JSON response encoder can nest.
    return Response(render_json(body, indent=None), media_type="application/json")
