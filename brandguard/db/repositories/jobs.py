from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, aliased

from brandguard.db.enums import AnalysisJobStatusEnum
from brandguard.db.models import AnalysisJob
from brandguard.db.repositories.base import Repository


JOB_STATUS_QUEUED = AnalysisJobStatusEnum.queued.value
JOB_STATUS_PROCESSING = AnalysisJobStatusEnum.processing.value
JOB_STATUS_COMPLETED = AnalysisJobStatusEnum.completed.value
JOB_STATUS_FAILED = AnalysisJobStatusEnum.failed.value

OPEN_JOB_STATUSES = (JOB_STATUS_QUEUED, JOB_STATUS_PROCESSING)

# Transaction-scoped advisory lock taken by every claimer on Postgres. Held until the
# claim commits, so concurrent claimers see each other's "processing" row.
ANALYSIS_QUEUE_LOCK_KEY = 480_311_207


class JobsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, job_id: int) -> Optional[AnalysisJob]:
        stmt = select(AnalysisJob).where(AnalysisJob.id == job_id)
        return self.session.scalars(stmt).first()

    def list_for_asset(self, asset_id: str) -> list[AnalysisJob]:
        stmt = (
            select(AnalysisJob)
            .where(AnalysisJob.asset_id == asset_id)
            .order_by(AnalysisJob.created_at, AnalysisJob.id)
        )
        return list(self.session.scalars(stmt).all())

    def has_open_job(self, asset_id: str) -> bool:
        stmt = (
            select(AnalysisJob.id)
            .where(AnalysisJob.asset_id == asset_id, AnalysisJob.status.in_(OPEN_JOB_STATUSES))
            .limit(1)
        )
        return self.session.execute(stmt).first() is not None

    def enqueue(self, asset_id: str, *, commit: bool = True) -> AnalysisJob:
        job = AnalysisJob(asset_id=asset_id, status=JOB_STATUS_QUEUED)
        self.session.add(job)
        if commit:
            self.session.commit()
            self.session.refresh(job)
        else:
            self.session.flush()
        return job

    def claim_next(self, *, stale_after: timedelta) -> Optional[AnalysisJob]:
        """
        Atomically move the oldest queued job to processing, or return None.

        Nothing is claimed while another job is processing and was updated within
        ``stale_after``. The selection and the status change are one UPDATE statement;
        on Postgres it additionally runs under a transaction-scoped advisory lock so
        two concurrent claimers cannot both pass the "nothing processing" check.
        """
        now = datetime.now(timezone.utc)
        cutoff = now - stale_after

        if self.dialect_name == "postgresql":
            acquired = self.session.execute(
                select(func.pg_try_advisory_xact_lock(ANALYSIS_QUEUE_LOCK_KEY))
            ).scalar()
            if not acquired:
                self.session.rollback()
                return None

        active = aliased(AnalysisJob)
        candidate = aliased(AnalysisJob)
        job_in_flight = (
            select(active.id)
            .where(active.status == JOB_STATUS_PROCESSING, active.updated_at > cutoff)
            .exists()
        )
        next_job_id = (
            select(candidate.id)
            .where(candidate.status == JOB_STATUS_QUEUED)
            .order_by(candidate.created_at, candidate.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(AnalysisJob)
            .where(AnalysisJob.id == next_job_id, ~job_in_flight)
            .values(
                status=JOB_STATUS_PROCESSING,
                started_at=now,
                attempts=AnalysisJob.attempts + 1,
                updated_at=now,
            )
            .returning(AnalysisJob)
            .execution_options(synchronize_session=False)
        )
        job = self.session.execute(stmt).scalar_one_or_none()
        self.session.commit()
        return job

    def fail_stale_jobs(self, *, stale_after: timedelta, error: str) -> list[tuple[int, str]]:
        """Fail processing jobs not updated within ``stale_after``; returns (job_id, asset_id) pairs."""
        now = datetime.now(timezone.utc)
        cutoff = now - stale_after
        stmt = (
            update(AnalysisJob)
            .where(AnalysisJob.status == JOB_STATUS_PROCESSING, AnalysisJob.updated_at <= cutoff)
            .values(
                status=JOB_STATUS_FAILED,
                error_message=error[:5000],
                finished_at=now,
                updated_at=now,
            )
            .returning(AnalysisJob.id, AnalysisJob.asset_id)
            .execution_options(synchronize_session=False)
        )
        rows = [(row.id, row.asset_id) for row in self.session.execute(stmt).all()]
        self.session.commit()
        return rows

    def _finish(self, job_id: int, **values) -> Optional[AnalysisJob]:
        # Only a processing job can reach a terminal state; a job already failed by
        # stale recovery stays failed.
        now = datetime.now(timezone.utc)
        stmt = (
            update(AnalysisJob)
            .where(AnalysisJob.id == job_id, AnalysisJob.status == JOB_STATUS_PROCESSING)
            .values(finished_at=now, updated_at=now, **values)
            .returning(AnalysisJob)
            .execution_options(synchronize_session=False)
        )
        job = self.session.execute(stmt).scalar_one_or_none()
        self.session.commit()
        return job

    def heartbeat(self, job_id: int) -> bool:
        """Refresh ``updated_at`` on a processing job; False when the job is no longer processing."""
        stmt = (
            update(AnalysisJob)
            .where(AnalysisJob.id == job_id, AnalysisJob.status == JOB_STATUS_PROCESSING)
            .values(updated_at=datetime.now(timezone.utc))
            .returning(AnalysisJob.id)
            .execution_options(synchronize_session=False)
        )
        touched = self.session.execute(stmt).first() is not None
        self.session.commit()
        return touched

    def mark_completed(self, job_id: int) -> Optional[AnalysisJob]:
        return self._finish(job_id, status=JOB_STATUS_COMPLETED, error_message=None)

    def mark_failed(self, job_id: int, *, error: str) -> Optional[AnalysisJob]:
        return self._finish(job_id, status=JOB_STATUS_FAILED, error_message=error[:5000])
