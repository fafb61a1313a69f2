from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    START = "start-qa"
    RERUN = "rerun"


class JobStage(str, Enum):
    CHECKING_LINKS = "checking_links"
    FORWARDING = "forwarding"
    COMPLETED = "completed"


STAGE_ORDER = {
    JobStage.CHECKING_LINKS: 0,
    JobStage.FORWARDING: 1,
    JobStage.COMPLETED: 2,
}


@dataclass(slots=True)
class Job:
    kind: JobKind
    identifier: str
    total_pages: int = 0
    checked_pages: int = 0
    stage: JobStage = JobStage.CHECKING_LINKS
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return job_key(self.kind, self.identifier)

    @property
    def project_name(self) -> str | None:
        return self.identifier if self.kind is JobKind.START else None

    @property
    def project_id(self) -> str | None:
        return self.identifier if self.kind is JobKind.RERUN else None

    @property
    def label(self) -> str:
        return self.identifier or self.key

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        current = now or datetime.now(timezone.utc)
        return round((current - self.started_at).total_seconds())


def job_key(kind: JobKind, identifier: str) -> str:
    return f"{kind.value}:{identifier}"


class JobRegistry:
    """Single-slot table of the QA run in flight.

    Membership is the lock: ``try_admit`` only inserts while the table is
    empty, and it never awaits, so the check-and-insert is atomic on the
    event loop.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def try_admit(self, job: Job) -> Job | None:
        """Insert ``job`` if no job is running; otherwise return the blocking job."""
        current = self.active()
        if current is not None:
            return current
        job.checked_pages = min(max(0, job.checked_pages), job.total_pages)
        self._jobs[job.key] = job
        logger.info("job admitted key=%s total_pages=%s", job.key, job.total_pages)
        return None

    def update(
        self,
        key: str,
        *,
        checked_pages: int | None = None,
        total_pages: int | None = None,
        stage: JobStage | None = None,
        owner: Job | None = None,
    ) -> Job | None:
        job = self._owned(key, owner)
        if job is None:
            return None
        if total_pages is not None:
            job.total_pages = max(total_pages, job.checked_pages)
        if checked_pages is not None:
            job.checked_pages = min(max(job.checked_pages, checked_pages), job.total_pages)
        if stage is not None:
            if STAGE_ORDER[stage] < STAGE_ORDER[job.stage]:
                logger.warning("ignoring backward stage change key=%s %s -> %s", key, job.stage.value, stage.value)
            else:
                job.stage = stage
        return job

    def release(self, key: str, *, owner: Job | None = None) -> bool:
        if self._owned(key, owner) is None:
            return False
        del self._jobs[key]
        logger.info("job released key=%s", key)
        return True

    def get(self, key: str) -> Job | None:
        return self._jobs.get(key)

    def find_by_project_name(self, project_name: str) -> Job | None:
        return next((job for job in self._jobs.values() if job.project_name == project_name), None)

    def active(self) -> Job | None:
        return next(iter(self._jobs.values()), None)

    def clear(self) -> int:
        count = len(self._jobs)
        self._jobs.clear()
        return count

    def _owned(self, key: str, owner: Job | None) -> Job | None:
        # A cancelled run must not touch a newer job that reused its key.
        job = self._jobs.get(key)
        if job is None or (owner is not None and job is not owner):
            return None
        return job


@lru_cache
def get_registry() -> JobRegistry:
    return JobRegistry()
