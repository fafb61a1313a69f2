from datetime import datetime, timedelta, timezone

from siteqa.services.registry import Job, JobKind, JobRegistry, JobStage, job_key


def test_registry_holds_a_single_job() -> None:
    registry = JobRegistry()
    first = Job(kind=JobKind.START, identifier="Acme", total_pages=3)
    second = Job(kind=JobKind.RERUN, identifier="42", total_pages=1)

    assert registry.try_admit(first) is None
    assert registry.try_admit(second) is first
    assert registry.get(job_key(JobKind.START, "Acme")) is first
    assert registry.get(job_key(JobKind.RERUN, "42")) is None
    assert registry.active() is first


def test_progress_is_monotonic_and_bounded_by_total() -> None:
    registry = JobRegistry()
    job = Job(kind=JobKind.START, identifier="Acme", total_pages=3)
    registry.try_admit(job)

    registry.update(job.key, checked_pages=2, owner=job)
    registry.update(job.key, checked_pages=1, owner=job)
    assert job.checked_pages == 2

    registry.update(job.key, checked_pages=10, owner=job)
    assert job.checked_pages == 3

    registry.update(job.key, total_pages=1, owner=job)
    assert job.total_pages == 3


def test_stage_never_moves_backwards() -> None:
    registry = JobRegistry()
    job = Job(kind=JobKind.RERUN, identifier="42")
    registry.try_admit(job)

    registry.update(job.key, stage=JobStage.FORWARDING)
    registry.update(job.key, stage=JobStage.CHECKING_LINKS)
    assert job.stage is JobStage.FORWARDING


def test_stale_owner_cannot_touch_a_readmitted_job() -> None:
    registry = JobRegistry()
    stale = Job(kind=JobKind.START, identifier="Acme", total_pages=2)
    registry.try_admit(stale)
    assert registry.clear() == 1

    fresh = Job(kind=JobKind.START, identifier="Acme", total_pages=4)
    assert registry.try_admit(fresh) is None

    assert registry.update(fresh.key, checked_pages=2, owner=stale) is None
    assert registry.release(fresh.key, owner=stale) is False
    assert fresh.checked_pages == 0
    assert registry.release(fresh.key, owner=fresh) is True
    assert registry.active() is None


def test_updates_after_release_are_ignored() -> None:
    registry = JobRegistry()
    job = Job(kind=JobKind.START, identifier="Acme", total_pages=2)
    registry.try_admit(job)
    registry.release(job.key, owner=job)

    assert registry.update(job.key, checked_pages=1, owner=job) is None
    assert registry.release(job.key, owner=job) is False


def test_lookup_by_project_name_and_elapsed_time() -> None:
    registry = JobRegistry()
    started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    job = Job(kind=JobKind.START, identifier="Acme", started_at=started)
    registry.try_admit(job)

    assert registry.find_by_project_name("Acme") is job
    assert registry.find_by_project_name("Other") is None
    assert job.project_name == "Acme"
    assert job.project_id is None
    assert job.elapsed_seconds(started + timedelta(seconds=90)) == 90
