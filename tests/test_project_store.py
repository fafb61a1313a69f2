from __future__ import annotations

import asyncio
from typing import Any

import asyncpg  # type: ignore[import-untyped]
import pytest

from siteqa.jobs.runner import QARun
from siteqa.services.admission import AdmissionController
from siteqa.services.project_store import ProjectStore, ProjectStoreUnavailableError
from siteqa.services.registry import JobKind, JobRegistry


class FailingPool:
    def __init__(self, error: BaseException) -> None:
        self.error = error

    async def fetchrow(self, *args: Any) -> Any:
        raise self.error

    async def fetch(self, *args: Any) -> Any:
        raise self.error


def _store(error: BaseException) -> ProjectStore:
    store = ProjectStore("postgresql://qa@localhost/qa", min_pool_size=1, max_pool_size=1)
    store._pool = FailingPool(error)
    return store


@pytest.mark.parametrize(
    "error",
    [TimeoutError(), asyncpg.InterfaceError("connection is closed"), ConnectionResetError("reset by peer")],
)
def test_connection_failures_surface_as_unavailable(error: BaseException) -> None:
    store = _store(error)
    with pytest.raises(ProjectStoreUnavailableError):
        asyncio.run(store.find_busy_project())
    with pytest.raises(ProjectStoreUnavailableError):
        asyncio.run(store.find_project_by_staging_url("https://staging.acme.test"))
    with pytest.raises(ProjectStoreUnavailableError):
        asyncio.run(store.reset_in_progress_pages())


def test_disabled_store_reports_clear() -> None:
    store = ProjectStore(None, min_pool_size=1, max_pool_size=1)
    assert store.enabled is False
    assert asyncio.run(store.find_busy_project()).busy is False
    assert asyncio.run(store.find_project_by_staging_url("https://staging.acme.test")) is None
    assert asyncio.run(store.reset_in_progress_pages()) == 0


def test_admission_fails_open_when_database_times_out() -> None:
    registry = JobRegistry()
    controller = AdmissionController(registry, _store(TimeoutError()), "https://n8n.example.com/webhook")
    run = QARun(
        kind=JobKind.START,
        identifier="Acme",
        webhook_url="https://n8n.example.com/webhook",
        pages=[{"page_url": "https://staging.acme.test/"}],
        project_data={"project_name": "Acme"},
    )

    job = asyncio.run(controller.admit(run, staging_url="https://staging.acme.test"))
    assert registry.active() is job
