from fastapi import APIRouter, Depends, status

from siteqa.api.deps import get_admission_controller, get_run_executor
from siteqa.jobs.runner import QARunExecutor, spawn_run
from siteqa.schemas.runs import RerunRequest, RunAccepted, StartQARequest
from siteqa.services.admission import AdmissionController

router = APIRouter()


@router.post(
    "/start-qa",
    response_model=RunAccepted,
    response_model_exclude_none=True,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_qa(
    payload: StartQARequest,
    admission: AdmissionController = Depends(get_admission_controller),
    executor: QARunExecutor = Depends(get_run_executor),
) -> RunAccepted:
    run = admission.build_start_run(payload)
    job = await admission.admit(run, staging_url=payload.project_data.staging_url)
    spawn_run(executor.execute(run, job), name=job.key)
    return RunAccepted(project_name=run.identifier)


@router.post(
    "/rerun",
    response_model=RunAccepted,
    response_model_exclude_none=True,
    status_code=status.HTTP_202_ACCEPTED,
)
async def rerun(
    payload: RerunRequest,
    admission: AdmissionController = Depends(get_admission_controller),
    executor: QARunExecutor = Depends(get_run_executor),
) -> RunAccepted:
    run = admission.build_rerun_run(payload)
    job = await admission.admit(run)
    spawn_run(executor.execute(run, job), name=job.key)
    return RunAccepted(project_id=run.identifier)
