import logging

from fastapi import APIRouter, Depends

from siteqa.core.errors import InvalidRequestError
from siteqa.schemas.runs import CancelJobOut, JobStatusOut
from siteqa.services.admission import WORKFLOW_BUSY_JOB
from siteqa.services.project_store import ProjectStore, ProjectStoreError, get_project_store
from siteqa.services.registry import Job, JobKind, JobRegistry, get_registry, job_key

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/job-status", response_model=JobStatusOut, response_model_exclude_unset=True)
async def job_status(
    project_name: str | None = None,
    project_id: str | None = None,
    registry: JobRegistry = Depends(get_registry),
    store: ProjectStore = Depends(get_project_store),
) -> JobStatusOut:
    if not project_name and not project_id:
        raise InvalidRequestError("Provide project_name or project_id as a query parameter")

    job = _lookup(registry, project_name, project_id)
    if job is not None:
        return JobStatusOut(
            found=True,
            type=job.kind.value,
            stage=job.stage.value,
            total_pages=job.total_pages,
            checked_pages=job.checked_pages,
            started_at=job.started_at,
            elapsed_seconds=job.elapsed_seconds(),
            project_name=job.project_name,
            project_id=job.project_id,
        )

    # No in-memory job; the workflow engine may still be processing pages.
    try:
        busy = await store.find_busy_project()
    except ProjectStoreError as exc:
        logger.warning("workflow busy check failed: %s", exc)
        return JobStatusOut(found=False)
    if busy.busy:
        return JobStatusOut(
            found=True,
            type=WORKFLOW_BUSY_JOB["type"],
            stage=WORKFLOW_BUSY_JOB["stage"],
            total_pages=None,
            checked_pages=None,
            started_at=None,
            elapsed_seconds=None,
            project_name=busy.project_name,
        )
    return JobStatusOut(found=False)


@router.post("/cancel-job", response_model=CancelJobOut)
async def cancel_job(
    registry: JobRegistry = Depends(get_registry),
    store: ProjectStore = Depends(get_project_store),
) -> CancelJobOut:
    cleared = registry.clear()
    logger.info("cleared %s active jobs from memory", cleared)
    try:
        reset = await store.reset_in_progress_pages()
    except ProjectStoreError as exc:
        logger.error("resetting in-progress pages failed: %s", exc)
    else:
        if store.enabled:
            logger.info("reset %s pages to pending", reset)
    return CancelJobOut(cleared_jobs=cleared)


def _lookup(registry: JobRegistry, project_name: str | None, project_id: str | None) -> Job | None:
    if project_name:
        job = registry.get(job_key(JobKind.START, project_name))
        if job is not None:
            return job
    if project_id:
        job = registry.get(job_key(JobKind.RERUN, project_id))
        if job is not None:
            return job
    if project_name:
        return registry.find_by_project_name(project_name)
    return None
