from __future__ import annotations

import logging
from typing import Any

from siteqa.core.errors import AdmissionConflictError, ConfigurationError, InvalidRequestError
from siteqa.jobs.runner import QARun
from siteqa.schemas.runs import RerunRequest, StartQARequest
from siteqa.services.project_store import ProjectStore, ProjectStoreError
from siteqa.services.registry import Job, JobKind, JobRegistry

logger = logging.getLogger(__name__)

WORKFLOW_BUSY_JOB = {"type": "n8n_processing", "stage": "n8n_workflow", "elapsed_seconds": None}


class AdmissionController:
    """Synchronous guard chain in front of every QA run."""

    def __init__(self, registry: JobRegistry, store: ProjectStore, default_webhook_url: str | None) -> None:
        self.registry = registry
        self.store = store
        self.default_webhook_url = default_webhook_url

    def build_start_run(self, request: StartQARequest) -> QARun:
        project = request.project_data
        if project is None or not project.project_name:
            raise InvalidRequestError("project_data with project_name is required")
        return QARun(
            kind=JobKind.START,
            identifier=project.project_name,
            webhook_url=self._webhook_url(request.n8n_webhook_url),
            pages=list(request.pages or []),
            settings=dict(request.settings or {}),
            project_data=project.model_dump(exclude_none=True),
        )

    def build_rerun_run(self, request: RerunRequest) -> QARun:
        if request.project_id is None or str(request.project_id) == "":
            raise InvalidRequestError("project_id is required")
        return QARun(
            kind=JobKind.RERUN,
            identifier=str(request.project_id),
            webhook_url=self._webhook_url(request.n8n_webhook_url),
            pages=list(request.pages or []),
            settings=dict(request.settings or {}),
        )

    async def admit(self, run: QARun, *, staging_url: str | None = None) -> Job:
        """Run the conflict guards and claim the single job slot for ``run``."""
        tag = run.kind.value.upper()
        if run.kind is JobKind.START and staging_url:
            await self._reject_duplicate_project(staging_url, tag)

        await self._reject_if_workflow_busy(tag)

        # No awaits from here on: the slot check and insert must not interleave.
        job = run.new_job()
        blocking = self.registry.try_admit(job)
        if blocking is not None:
            elapsed = blocking.elapsed_seconds()
            logger.info("[%s] rejected, server busy with %r (running for %ss)", tag, blocking.label, elapsed)
            raise AdmissionConflictError(
                "server_busy",
                f'Another job is currently running ("{blocking.label}"). Please wait for it to finish.',
                active_job=describe_active_job(blocking),
            )
        return job

    def _webhook_url(self, requested: str | None) -> str:
        webhook_url = requested or self.default_webhook_url
        if not webhook_url:
            raise ConfigurationError(
                "n8n webhook URL is not configured. Set SITEQA_N8N_WEBHOOK_URL or pass "
                "n8n_webhook_url in the request body."
            )
        return webhook_url

    async def _reject_duplicate_project(self, staging_url: str, tag: str) -> None:
        try:
            existing = await self.store.find_project_by_staging_url(staging_url)
        except ProjectStoreError as exc:
            logger.warning("[%s] duplicate check failed, continuing: %s", tag, exc)
            return
        if existing is not None:
            logger.info("[%s] rejected, duplicate staging url %s (project %r)", tag, staging_url, existing.name)
            raise AdmissionConflictError(
                "duplicate_project",
                f'A project with this staging URL already exists ("{existing.name}").',
            )

    async def _reject_if_workflow_busy(self, tag: str) -> None:
        try:
            status = await self.store.find_busy_project()
        except ProjectStoreError as exc:
            logger.warning("[%s] workflow busy check failed, continuing: %s", tag, exc)
            return
        if status.busy:
            logger.info("[%s] rejected, workflow busy with %r", tag, status.project_name)
            raise AdmissionConflictError(
                "server_busy",
                f'Another project is being processed by the QA workflow ("{status.project_name}"). '
                "Please wait for it to finish.",
                active_job=dict(WORKFLOW_BUSY_JOB),
            )


def describe_active_job(job: Job) -> dict[str, Any]:
    return {"type": job.kind.value, "stage": job.stage.value, "elapsed_seconds": job.elapsed_seconds()}
