from datetime import datetime, timedelta, timezone

from brandguard.db.models import AnalysisJob
from brandguard.db.repositories.jobs import JobsRepository

STALE_AFTER = timedelta(minutes=30)


def _job(db_session, asset, *, status="queued", age_minutes=0, updated_minutes_ago=None) -> AnalysisJob:
    now = datetime.now(timezone.utc)
    job = AnalysisJob(
        asset_id=asset.id,
        status=status,
        created_at=now - timedelta(minutes=age_minutes),
        updated_at=now - timedelta(minutes=updated_minutes_ago if updated_minutes_ago is not None else age_minutes),
        started_at=now - timedelta(minutes=age_minutes) if status == "processing" else None,
    )
    db_session.add(job)
    db_session.commit()
    return job


def test_claim_next_returns_none_when_queue_is_empty(db_session):
    assert JobsRepository(db_session).claim_next(stale_after=STALE_AFTER) is None


def test_claim_next_takes_the_oldest_queued_job(db_session, make_asset):
    newer = _job(db_session, make_asset(asset_name="newer.mp4"), age_minutes=1)
    older = _job(db_session, make_asset(asset_name="older.mp4"), age_minutes=10)

    claimed = JobsRepository(db_session).claim_next(stale_after=STALE_AFTER)

    assert claimed.id == older.id
    assert claimed.status == "processing"
    assert claimed.attempts == 1
    assert claimed.started_at is not None
    assert db_session.get(AnalysisJob, newer.id).status == "queued"


def test_nothing_is_claimed_while_another_job_is_processing(db_session, make_asset):
    _job(db_session, make_asset(asset_name="busy.mp4"), status="processing", age_minutes=5)
    waiting = _job(db_session, make_asset(asset_name="waiting.mp4"), age_minutes=10)

    assert JobsRepository(db_session).claim_next(stale_after=STALE_AFTER) is None
    assert db_session.get(AnalysisJob, waiting.id).status == "queued"


def test_next_job_is_claimed_once_the_active_job_completes(db_session, make_asset):
    repo = JobsRepository(db_session)
    first = _job(db_session, make_asset(asset_name="first.mp4"), age_minutes=10)
    second = _job(db_session, make_asset(asset_name="second.mp4"), age_minutes=5)

    assert repo.claim_next(stale_after=STALE_AFTER).id == first.id
    assert repo.claim_next(stale_after=STALE_AFTER) is None

    repo.mark_completed(first.id)

    assert repo.claim_next(stale_after=STALE_AFTER).id == second.id


def test_fail_stale_jobs_only_touches_jobs_past_the_cutoff(db_session, make_asset):
    repo = JobsRepository(db_session)
    stale_asset = make_asset(asset_name="stuck.mp4", status="processing")
    stale = _job(db_session, stale_asset, status="processing", age_minutes=90, updated_minutes_ago=45)

    failed = repo.fail_stale_jobs(stale_after=STALE_AFTER, error="timed out")

    assert failed == [(stale.id, stale_asset.id)]
    job = db_session.get(AnalysisJob, stale.id)
    assert job.status == "failed"
    assert job.error_message == "timed out"
    assert job.finished_at is not None
    assert repo.fail_stale_jobs(stale_after=STALE_AFTER, error="timed out") == []


def test_fresh_processing_job_is_not_considered_stale(db_session, make_asset):
    _job(db_session, make_asset(), status="processing", age_minutes=60, updated_minutes_ago=5)
    assert JobsRepository(db_session).fail_stale_jobs(stale_after=STALE_AFTER, error="timed out") == []


def test_mark_failed_truncates_long_errors(db_session, make_asset):
    repo = JobsRepository(db_session)
    job = _job(db_session, make_asset(), status="processing")

    repo.mark_failed(job.id, error="x" * 6000)

    stored = db_session.get(AnalysisJob, job.id)
    assert stored.status == "failed"
    assert len(stored.error_message) == 5000


def test_has_open_job(db_session, make_asset):
    repo = JobsRepository(db_session)
    asset = make_asset()
    assert repo.has_open_job(asset.id) is False

    job = repo.enqueue(asset.id)

    assert repo.has_open_job(asset.id) is True
    assert repo.claim_next(stale_after=STALE_AFTER).id == job.id
    assert repo.has_open_job(asset.id) is True
    repo.mark_completed(job.id)
    assert repo.has_open_job(asset.id) is False


def test_terminal_writes_ignore_jobs_that_are_no_longer_processing(db_session, make_asset):
    repo = JobsRepository(db_session)
    stale = _job(db_session, make_asset(), status="processing", age_minutes=90, updated_minutes_ago=60)
    repo.fail_stale_jobs(stale_after=STALE_AFTER, error="timed out")

    assert repo.mark_completed(stale.id) is None
    assert repo.mark_failed(stale.id, error="late failure") is None

    stored = db_session.get(AnalysisJob, stale.id)
    assert stored.status == "failed"
    assert stored.error_message == "timed out"


def test_queued_job_cannot_be_completed_before_it_is_claimed(db_session, make_asset):
    job = _job(db_session, make_asset())

    assert JobsRepository(db_session).mark_completed(job.id) is None
    assert db_session.get(AnalysisJob, job.id).status == "queued"


def test_heartbeat_keeps_a_long_running_job_out_of_stale_recovery(db_session, make_asset):
    repo = JobsRepository(db_session)
    job = _job(db_session, make_asset(), status="processing", age_minutes=90, updated_minutes_ago=45)

    assert repo.heartbeat(job.id) is True
    assert repo.fail_stale_jobs(stale_after=STALE_AFTER, error="timed out") == []
    assert db_session.get(AnalysisJob, job.id).status == "processing"


def test_heartbeat_reports_a_job_that_was_failed_as_stale(db_session, make_asset):
    repo = JobsRepository(db_session)
    job = _job(db_session, make_asset(), status="processing", age_minutes=90, updated_minutes_ago=45)
    repo.fail_stale_jobs(stale_after=STALE_AFTER, error="timed out")

    assert repo.heartbeat(job.id) is False
