from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from brandguard.db.enums import AssetStatusEnum
from brandguard.db.models import AnalysisJob
from brandguard.db.repositories.assets import AssetsRepository
from brandguard.db.repositories.jobs import JobsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    success: bool
    job_id: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CampaignRetryResult:
    retried_count: int
    failed_count: int
    details: list[dict[str, Any]] = field(default_factory=list)


def enqueue_for_analysis(session: Session, asset_id: str) -> Optional[AnalysisJob]:
    """Queue a freshly uploaded asset. Returns None when the asset is not eligible."""
    asset = AssetsRepository(session).get(asset_id)
    if asset is None or asset.status != AssetStatusEnum.pending.value or not asset.storage_path:
        return None
    jobs_repo = JobsRepository(session)
    if jobs_repo.has_open_job(asset_id):
        return None
    job = jobs_repo.enqueue(asset_id)
    logger.info("asset_queue.enqueued", extra={"asset_id": asset_id, "job_id": job.id})
    return job


def retry_failed_asset(session: Session, asset_id: str) -> RetryResult:
    """Move a failed asset back to pending and queue a new job for it."""
    assets_repo = AssetsRepository(session)
    jobs_repo = JobsRepository(session)

    asset = assets_repo.get(asset_id)
    if asset is None:
        return RetryResult(success=False, error="Asset not found")
    if asset.status != AssetStatusEnum.failed.value:
        return RetryResult(success=False, error="Asset is not in failed status")
    if jobs_repo.has_open_job(asset_id):
        return RetryResult(success=False, error="Asset already has a queued or processing job")

    if assets_repo.mark_pending(asset_id, commit=False) is None:
        session.rollback()
        return RetryResult(success=False, error="Asset is not in failed status")
    job = jobs_repo.enqueue(asset_id, commit=False)
    session.commit()
    logger.info("asset_queue.retry_enqueued", extra={"asset_id": asset_id, "job_id": job.id})
    return RetryResult(success=True, job_id=job.id, message="Asset queued for retry")


def retry_failed_assets_for_campaign(session: Session, campaign_id: str) -> CampaignRetryResult:
    failed_assets = AssetsRepository(session).list_by_status(
        campaign_id=campaign_id, status=AssetStatusEnum.failed
    )
    asset_ids = [str(asset.id) for asset in failed_assets]
    details: list[dict[str, Any]] = []
    retried = 0
    for asset_id in asset_ids:
        result = retry_failed_asset(session, asset_id)
        if result.success:
            retried += 1
        details.append(
            {"assetId": asset_id, "success": result.success, "jobId": result.job_id, "error": result.error}
        )
    return CampaignRetryResult(retried_count=retried, failed_count=len(asset_ids) - retried, details=details)
