from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError

from brandguard.auth import require_worker_token
from brandguard.schemas.jobs import ProcessJobResponse
from brandguard.worker import WORKER_STATUS_FAILED, WORKER_STATUS_IDLE, process_next_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_worker_token)])


@router.post("/process", response_model=ProcessJobResponse)
def process_queue() -> ORJSONResponse:
    try:
        result = process_next_job()
    except SQLAlchemyError as exc:
        logger.exception("job_queue.claim_failed")
        return ORJSONResponse(status_code=500, content={"error": f"Failed to dequeue job: {exc}"})

    if result.status == WORKER_STATUS_IDLE:
        return ORJSONResponse(status_code=200, content={"message": "No jobs available"})
    if result.status == WORKER_STATUS_FAILED:
        return ORJSONResponse(
            status_code=500,
            content={"error": result.error, "jobId": result.job_id, "assetId": result.asset_id},
        )
    body = ProcessJobResponse(message="Job processed successfully", jobId=result.job_id, assetId=result.asset_id)
    return ORJSONResponse(status_code=200, content=body.model_dump())
