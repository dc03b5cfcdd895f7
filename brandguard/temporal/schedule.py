from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from temporalio.client import (
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleAlreadyRunningError,
    ScheduleIntervalSpec,
    SchedulePolicy,
    ScheduleOverlapPolicy,
    ScheduleSpec,
)

from brandguard.config import settings
from brandguard.temporal.client import get_temporal_client
from brandguard.temporal.workflows.analysis_queue import ProcessAnalysisQueueWorkflow

logger = logging.getLogger(__name__)


def build_queue_schedule() -> Schedule:
    """Start the queue workflow on a fixed interval, skipping ticks while a run is still active."""
    return Schedule(
        action=ScheduleActionStartWorkflow(
            ProcessAnalysisQueueWorkflow.run,
            id=f"{settings.TEMPORAL_QUEUE_SCHEDULE_ID}-run",
            task_queue=settings.TEMPORAL_TASK_QUEUE,
        ),
        spec=ScheduleSpec(
            intervals=[ScheduleIntervalSpec(every=timedelta(seconds=settings.TEMPORAL_QUEUE_SCHEDULE_INTERVAL_SECONDS))]
        ),
        policy=SchedulePolicy(overlap=ScheduleOverlapPolicy.SKIP),
    )


async def ensure_queue_schedule() -> bool:
    """Create the queue schedule. Returns False when it already exists."""
    client = await get_temporal_client()
    try:
        await client.create_schedule(settings.TEMPORAL_QUEUE_SCHEDULE_ID, build_queue_schedule())
    except ScheduleAlreadyRunningError:
        logger.info("analysis_queue.schedule_exists", extra={"schedule_id": settings.TEMPORAL_QUEUE_SCHEDULE_ID})
        return False
    logger.info("analysis_queue.schedule_created", extra={"schedule_id": settings.TEMPORAL_QUEUE_SCHEDULE_ID})
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(ensure_queue_schedule())
