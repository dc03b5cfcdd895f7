from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from brandguard.auth import require_worker_token
from brandguard.db.deps import get_session
from brandguard.schemas.jobs import RetryAssetResponse, RetryCampaignResponse
from brandguard.services.asset_queue import retry_failed_asset, retry_failed_assets_for_campaign

router = APIRouter(tags=["assets"], dependencies=[Depends(require_worker_token)])


@router.post("/assets/{asset_id}/retry", response_model=RetryAssetResponse)
def retry_asset(asset_id: str, session: Session = Depends(get_session)) -> ORJSONResponse:
    result = retry_failed_asset(session, asset_id)
    body = RetryAssetResponse(
        success=result.success,
        message=result.message,
        jobId=result.job_id,
        error=result.error,
    )
    status_code = 200
    if not result.success:
        status_code = 404 if result.error == "Asset not found" else 409
    return ORJSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post("/campaigns/{campaign_id}/assets/retry-failed", response_model=RetryCampaignResponse)
def retry_campaign_assets(campaign_id: str, session: Session = Depends(get_session)) -> RetryCampaignResponse:
    result = retry_failed_assets_for_campaign(session, campaign_id)
    return RetryCampaignResponse(
        success=True,
        retriedCount=result.retried_count,
        failedCount=result.failed_count,
        details=result.details,
    )
