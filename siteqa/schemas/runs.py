from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProjectData(BaseModel):
    project_name: str | None = None
    staging_url: str | None = None

    model_config = ConfigDict(extra="allow")


class StartQARequest(BaseModel):
    project_data: ProjectData | None = None
    pages: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None
    n8n_webhook_url: str | None = None


class RerunRequest(BaseModel):
    project_id: str | int | None = None
    pages: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None
    n8n_webhook_url: str | None = None


class RunAccepted(BaseModel):
    status: str = "processing"
    project_name: str | None = None
    project_id: str | None = None


class JobStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    found: bool
    type: str | None = None
    stage: str | None = None
    total_pages: int | None = Field(default=None, alias="totalPages")
    checked_pages: int | None = Field(default=None, alias="checkedPages")
    started_at: datetime | None = Field(default=None, alias="startedAt")
    elapsed_seconds: int | None = None
    project_name: str | None = Field(default=None, alias="projectName")
    project_id: str | None = Field(default=None, alias="projectId")


class CancelJobOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Active jobs cancelled"
    cleared_jobs: int = Field(alias="clearedJobs")
