from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from brandguard.temporal.activities.queue_activities import process_next_analysis_job_activity

# Above the transcription ceiling plus bounded adapter retries.
PROCESS_JOB_START_TO_CLOSE_MINUTES = 25


@workflow.defn
class ProcessAnalysisQueueWorkflow:
    @workflow.run
    async def run(self) -> Dict[str, Any]:
        result: Dict[str, Any] = await workflow.execute_activity(
            process_next_analysis_job_activity,
            start_to_close_timeout=timedelta(minutes=PROCESS_JOB_START_TO_CLOSE_MINUTES),
            retry_policy=RetryPolicy(maximum_attempts=1),
        )
        workflow.logger.info(
            "analysis_queue.workflow_finished",
            extra={"workflow_id": workflow.info().workflow_id, "status": result.get("status")},
        )
        return result
