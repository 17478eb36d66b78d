"""Campaign lifecycle and recipient import endpoints."""

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, UploadFile

from core.database import DbSession
from core.ratelimit import IMPORT_LIMIT, limiter
from repositories.campaign_repository import CampaignRepository
from schemas import CampaignCreate, CampaignResponse, CertificateResponse, ImportResult
from services.campaigns_service import (
    InvalidCampaignStateError,
    create_campaign,
    execute_campaign,
    finish_campaign,
    import_recipients,
)
from services.certificate_pdf_service import generate_pending_pdfs
from services.certificates_service import (
    CampaignNotFoundError,
    list_campaign_certificates,
)
from services.designs_service import DesignNotFoundError

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])

MAX_IMPORT_BYTES = 5 * 1024 * 1024

_NOT_FOUND = {404: {"description": "Campaign not found"}}


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=201,
    responses={404: {"description": "Design not found"}},
)
async def create_campaign_endpoint(
    body: CampaignCreate, db: DbSession
) -> CampaignResponse:
    try:
        campaign = await create_campaign(db, body)
    except DesignNotFoundError:
        raise HTTPException(status_code=404, detail="Design not found")
    return CampaignResponse.model_validate(campaign)


@router.get("/{campaign_id}", response_model=CampaignResponse, responses=_NOT_FOUND)
async def get_campaign_endpoint(campaign_id: str, db: DbSession) -> CampaignResponse:
    campaign = await CampaignRepository(db).get_by_id(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return CampaignResponse.model_validate(campaign)


@router.get(
    "/{campaign_id}/certificates",
    response_model=list[CertificateResponse],
)
async def list_campaign_certificates_endpoint(
    campaign_id: str,
    db: DbSession,
    limit: int = 500,
    offset: int = 0,
) -> list[CertificateResponse]:
    certificates = await list_campaign_certificates(
        db, campaign_id, limit=min(limit, 500), offset=max(offset, 0)
    )
    return [CertificateResponse.from_certificate(c) for c in certificates]


@router.post(
    "/{campaign_id}/execute",
    response_model=CampaignResponse,
    responses={**_NOT_FOUND, 409: {"description": "Campaign is not a draft"}},
)
async def execute_campaign_endpoint(
    campaign_id: str, db: DbSession
) -> CampaignResponse:
    try:
        campaign = await execute_campaign(db, campaign_id)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except InvalidCampaignStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return CampaignResponse.model_validate(campaign)


@router.post(
    "/{campaign_id}/finish",
    response_model=CampaignResponse,
    responses={
        **_NOT_FOUND,
        409: {"description": "Campaign is not active or has pending certificates"},
    },
)
async def finish_campaign_endpoint(
    campaign_id: str, db: DbSession
) -> CampaignResponse:
    try:
        campaign = await finish_campaign(db, campaign_id)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except InvalidCampaignStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return CampaignResponse.model_validate(campaign)


@router.post(
    "/{campaign_id}/import",
    response_model=ImportResult,
    status_code=201,
    responses={
        **_NOT_FOUND,
        413: {"description": "CSV file too large"},
        422: {"description": "CSV file is not UTF-8"},
    },
)
@limiter.limit(IMPORT_LIMIT)
async def import_recipients_endpoint(
    request: Request,
    campaign_id: str,
    file: UploadFile,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> ImportResult:
    """Create certificates from an uploaded recipient CSV.

    PDFs are rendered in the background after the response is sent.
    """
    content = await file.read(MAX_IMPORT_BYTES + 1)
    if len(content) > MAX_IMPORT_BYTES:
        raise HTTPException(status_code=413, detail="CSV file too large")

    try:
        result = await import_recipients(db, campaign_id, content)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except UnicodeDecodeError:
        raise HTTPException(status_code=422, detail="CSV file must be UTF-8")

    if result.certificate_ids:
        background_tasks.add_task(
            generate_pending_pdfs,
            request.app.state.session_maker,
            result.certificate_ids,
        )
    return result
