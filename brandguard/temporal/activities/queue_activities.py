from __future__ import annotations

from typing import Any, Dict

from temporalio import activity

from brandguard.worker import process_next_job


@activity.defn(name="analysis_queue.process_next_job")
def process_next_analysis_job_activity() -> Dict[str, Any]:
    """Run one worker invocation. Job failures are recorded on the rows, not raised."""
    result = process_next_job()
    activity.logger.info(
        "analysis_queue.activity_finished",
        extra={"status": result.status, "job_id": result.job_id, "asset_id": result.asset_id},
    )
    return {
        "status": result.status,
        "job_id": result.job_id,
        "asset_id": result.asset_id,
        "error": result.error,
    }
