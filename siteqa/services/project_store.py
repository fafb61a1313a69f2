from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import asyncpg  # type: ignore[import-untyped]

from siteqa.core.config import get_settings

# Dropped connections and command_timeout expiry surface outside PostgresError.
_CONNECTION_ERRORS = (asyncpg.InterfaceError, OSError, TimeoutError)

IN_PROGRESS_PAGE_STATUSES = ["in_progress", "processing"]
RESET_PAGE_STATUS = "pending"


class ProjectStoreError(Exception):
    """Base project store error."""


class ProjectStoreUnavailableError(ProjectStoreError):
    """Raised when the database is unavailable or not configured."""


@dataclass(slots=True)
class ProjectRecord:
    id: str
    name: str


@dataclass(slots=True)
class BusyStatus:
    busy: bool
    project_name: str | None = None


class ProjectStore:
    """Read-mostly view of the QA workflow's project and page tables.

    Only used for admission guards and cancel resets; with no database
    configured every guard reports "clear".
    """

    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.database_url)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def find_project_by_staging_url(self, staging_url: str) -> ProjectRecord | None:
        if not self.enabled:
            return None
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                select id::text as id, name
                from projects
                where staging_url = $1
                limit 1
                """,
                staging_url,
            )
        except asyncpg.PostgresError as exc:
            raise ProjectStoreError(str(exc)) from exc
        except _CONNECTION_ERRORS as exc:
            raise ProjectStoreUnavailableError(f"database query failed: {exc!r}") from exc
        if row is None:
            return None
        return ProjectRecord(id=row["id"], name=row["name"] or "Unknown")

    async def find_busy_project(self) -> BusyStatus:
        """Report whether the downstream workflow still has pages in flight."""
        if not self.enabled:
            return BusyStatus(busy=False)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                select pr.name as project_name
                from pages p
                left join projects pr on pr.id = p.project_id
                where p.status = any($1::text[])
                limit 1
                """,
                IN_PROGRESS_PAGE_STATUSES,
            )
        except asyncpg.PostgresError as exc:
            raise ProjectStoreError(str(exc)) from exc
        except _CONNECTION_ERRORS as exc:
            raise ProjectStoreUnavailableError(f"database query failed: {exc!r}") from exc
        if row is None:
            return BusyStatus(busy=False)
        return BusyStatus(busy=True, project_name=row["project_name"] or "Unknown")

    async def reset_in_progress_pages(self) -> int:
        if not self.enabled:
            return 0
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                update pages
                set status = $2
                where status = any($1::text[])
                returning id
                """,
                IN_PROGRESS_PAGE_STATUSES,
                RESET_PAGE_STATUS,
            )
        except asyncpg.PostgresError as exc:
            raise ProjectStoreError(str(exc)) from exc
        except _CONNECTION_ERRORS as exc:
            raise ProjectStoreUnavailableError(f"database query failed: {exc!r}") from exc
        return len(rows)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise ProjectStoreUnavailableError("SITEQA_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise ProjectStoreUnavailableError("database unavailable") from exc


@lru_cache
def get_project_store() -> ProjectStore:
    settings = get_settings()
    return ProjectStore(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
