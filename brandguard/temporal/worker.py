from __future__ import annotations

import asyncio
import concurrent.futures
import logging

from temporalio.worker import Worker

from brandguard.config import settings
from brandguard.temporal.client import get_temporal_client
from brandguard.temporal.activities.queue_activities import process_next_analysis_job_activity
from brandguard.temporal.schedule import ensure_queue_schedule
from brandguard.temporal.workflows.analysis_queue import ProcessAnalysisQueueWorkflow
from brandguard.worker import check_stale_window


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    check_stale_window()
    client = await get_temporal_client()
    await ensure_queue_schedule()
    # A single activity slot: the queue itself is single-flight.
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as activity_executor:
        worker = Worker(
            client,
            task_queue=settings.TEMPORAL_TASK_QUEUE,
            workflows=[ProcessAnalysisQueueWorkflow],
            activities=[process_next_analysis_job_activity],
            activity_executor=activity_executor,
            max_concurrent_activities=1,
        )
        await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
