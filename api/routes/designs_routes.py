"""Design endpoints: creation, content updates, variables and previews."""

from fastapi import APIRouter, HTTPException, Request

from core.config import get_settings
from core.database import DbSession
from core.ratelimit import RENDER_LIMIT, limiter
from rendering import project_to_html, render_payload
from schemas import (
    DesignCreate,
    DesignPreviewResponse,
    DesignResponse,
    DesignUpdate,
    DesignVariablesResponse,
    RecipientInput,
)
from services.designs_service import (
    DesignNotFoundError,
    create_design,
    get_design,
    get_design_variables,
    to_snapshot,
    update_design_data,
)

router = APIRouter(prefix="/api/designs", tags=["designs"])

_NOT_FOUND = {404: {"description": "Design not found"}}


@router.post("", response_model=DesignResponse, status_code=201)
async def create_design_endpoint(body: DesignCreate, db: DbSession) -> DesignResponse:
    design = await create_design(db, body)
    return DesignResponse.model_validate(design)


@router.get("/{design_id}", response_model=DesignResponse, responses=_NOT_FOUND)
async def get_design_endpoint(design_id: str, db: DbSession) -> DesignResponse:
    try:
        design = await get_design(db, design_id)
    except DesignNotFoundError:
        raise HTTPException(status_code=404, detail="Design not found")
    return DesignResponse.model_validate(design)


@router.put("/{design_id}", response_model=DesignResponse, responses=_NOT_FOUND)
async def update_design_endpoint(
    design_id: str, body: DesignUpdate, db: DbSession
) -> DesignResponse:
    """Replace a design's canvas document and/or settings."""
    try:
        design = await update_design_data(db, design_id, body)
    except DesignNotFoundError:
        raise HTTPException(status_code=404, detail="Design not found")
    return DesignResponse.model_validate(design)


@router.get(
    "/{design_id}/variables",
    response_model=DesignVariablesResponse,
    responses=_NOT_FOUND,
)
async def get_design_variables_endpoint(
    design_id: str, db: DbSession
) -> DesignVariablesResponse:
    """List the ``{{variable}}`` keys a design's text references."""
    try:
        variables = await get_design_variables(db, design_id)
    except DesignNotFoundError:
        raise HTTPException(status_code=404, detail="Design not found")
    return DesignVariablesResponse(design_id=design_id, variables=variables)


@router.post(
    "/{design_id}/preview",
    response_model=DesignPreviewResponse,
    responses=_NOT_FOUND,
)
@limiter.limit(RENDER_LIMIT)
async def preview_design_endpoint(
    request: Request,
    design_id: str,
    body: RecipientInput,
    db: DbSession,
) -> DesignPreviewResponse:
    """Render a design for a sample recipient without persisting anything."""
    try:
        design = await get_design(db, design_id)
    except DesignNotFoundError:
        raise HTTPException(status_code=404, detail="Design not found")

    payload = render_payload(to_snapshot(design), body)
    if payload is None:
        return DesignPreviewResponse()

    return DesignPreviewResponse(
        payload=payload.to_dict(),
        html=project_to_html(payload, asset_base_url=get_settings().asset_base_url),
    )
