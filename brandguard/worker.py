"""Analysis queue worker: claims one job per invocation and runs the compliance pipeline."""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from brandguard.config import settings
from brandguard.db.base import session_scope
from brandguard.db.repositories.assets import AssetsRepository
from brandguard.db.repositories.jobs import JobsRepository
from brandguard.services.pipeline import CompliancePipeline, PipelineOutcome, worst_case_runtime_seconds

logger = logging.getLogger(__name__)

WORKER_STATUS_IDLE = "idle"
WORKER_STATUS_COMPLETED = "completed"
WORKER_STATUS_FAILED = "failed"

SessionFactory = Callable[[], ContextManager[Session]]


@dataclass(frozen=True)
class WorkerResult:
    status: str
    job_id: Optional[int] = None
    asset_id: Optional[str] = None
    error: Optional[str] = None
    outcome: Optional[PipelineOutcome] = None


def _stale_after(minutes: Optional[int] = None) -> timedelta:
    return timedelta(minutes=minutes or settings.JOB_STALE_AFTER_MINUTES)


def recover_stale_jobs(session: Session, *, stale_after: timedelta) -> int:
    """Fail jobs stuck in processing past ``stale_after`` so they stop blocking the queue."""
    minutes = int(stale_after.total_seconds() // 60)
    error = f"Job exceeded the processing timeout of {minutes} minutes; resubmit to retry"
    stale = JobsRepository(session).fail_stale_jobs(stale_after=stale_after, error=error)
    assets_repo = AssetsRepository(session)
    for job_id, asset_id in stale:
        assets_repo.mark_failed(asset_id, error=error)
        logger.warning("job_queue.stale_job_failed", extra={"job_id": job_id, "asset_id": asset_id})
    return len(stale)


def check_stale_window(stale_after: Optional[timedelta] = None) -> bool:
    """Warn when a job can outlive the stale window and be failed while still running."""
    window = (stale_after or _stale_after()).total_seconds()
    worst_case = worst_case_runtime_seconds()
    if worst_case < window:
        return True
    logger.warning(
        "job_queue.stale_window_too_short",
        extra={"worst_case_seconds": worst_case, "stale_after_seconds": window},
    )
    return False


def run_job(
    session: Session,
    *,
    job_id: int,
    asset_id: str,
    pipeline: CompliancePipeline,
) -> WorkerResult:
    """Run the pipeline for a claimed job and write its terminal status exactly once."""
    try:
        outcome = pipeline.process_asset(
            session,
            asset_id,
            heartbeat=lambda: JobsRepository(session).heartbeat(job_id),
        )
    except Exception as exc:  # noqa: BLE001
        session.rollback()
        message = str(exc) or type(exc).__name__
        logger.exception(
            "job_queue.job_failed",
            extra={"job_id": job_id, "asset_id": asset_id, "error_type": type(exc).__name__},
        )
        # A job already failed by stale recovery no longer owns its asset.
        if JobsRepository(session).mark_failed(job_id, error=message) is not None:
            AssetsRepository(session).mark_failed(asset_id, error=message)
        return WorkerResult(status=WORKER_STATUS_FAILED, job_id=job_id, asset_id=asset_id, error=message)

    if JobsRepository(session).mark_completed(job_id) is None:
        message = "Job was no longer processing when analysis finished"
        logger.warning("job_queue.completion_discarded", extra={"job_id": job_id, "asset_id": asset_id})
        return WorkerResult(status=WORKER_STATUS_FAILED, job_id=job_id, asset_id=asset_id, error=message)

    logger.info(
        "job_queue.job_completed",
        extra={
            "job_id": job_id,
            "asset_id": asset_id,
            "overall_status": outcome.overall_status,
            "compliance_score": outcome.compliance_score,
        },
    )
    return WorkerResult(status=WORKER_STATUS_COMPLETED, job_id=job_id, asset_id=asset_id, outcome=outcome)


def process_next_job(
    *,
    pipeline: Optional[CompliancePipeline] = None,
    session_factory: SessionFactory = session_scope,
    stale_after_minutes: Optional[int] = None,
) -> WorkerResult:
    """
    One worker invocation: recover stale jobs, claim at most one job, process it.

    Returns an idle result without side effects when nothing can be claimed, either
    because the queue is empty or because another job is already processing.
    """
    stale_after = _stale_after(stale_after_minutes)
    with session_factory() as session:
        recover_stale_jobs(session, stale_after=stale_after)
        job = JobsRepository(session).claim_next(stale_after=stale_after)
        if job is None:
            logger.info("job_queue.idle")
            return WorkerResult(status=WORKER_STATUS_IDLE)

        job_id = job.id
        asset_id = str(job.asset_id)
        logger.info("job_queue.claimed", extra={"job_id": job_id, "asset_id": asset_id, "attempts": job.attempts})
        return run_job(
            session,
            job_id=job_id,
            asset_id=asset_id,
            pipeline=pipeline or CompliancePipeline(),
        )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Process queued creative asset analysis jobs.")
    parser.add_argument(
        "--drain",
        action="store_true",
        help="Keep claiming jobs until the queue is idle instead of processing a single job.",
    )
    parser.add_argument("--stale-after-minutes", type=int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    check_stale_window(_stale_after(args.stale_after_minutes))

    pipeline = CompliancePipeline()
    failures = 0
    while True:
        result = process_next_job(pipeline=pipeline, stale_after_minutes=args.stale_after_minutes)
        if result.status == WORKER_STATUS_IDLE:
            break
        if result.status == WORKER_STATUS_FAILED:
            failures += 1
        if not args.drain:
            break
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
