import httpx
from fastapi import Depends

from siteqa.core.config import Settings, get_settings
from siteqa.jobs.runner import QARunExecutor
from siteqa.services.admission import AdmissionController
from siteqa.services.project_store import ProjectStore, get_project_store
from siteqa.services.registry import JobRegistry, get_registry
from siteqa.services.renderer import get_renderer


def get_link_transport() -> httpx.AsyncBaseTransport | None:
    """Transport used by link liveness checks; ``None`` means real network I/O."""
    return None


def get_webhook_transport() -> httpx.AsyncBaseTransport | None:
    return None


def get_admission_controller(
    settings: Settings = Depends(get_settings),
    registry: JobRegistry = Depends(get_registry),
    store: ProjectStore = Depends(get_project_store),
) -> AdmissionController:
    return AdmissionController(registry, store, settings.n8n_webhook_url)


def get_run_executor(
    settings: Settings = Depends(get_settings),
    registry: JobRegistry = Depends(get_registry),
    renderer=Depends(get_renderer),
    link_transport: httpx.AsyncBaseTransport | None = Depends(get_link_transport),
    webhook_transport: httpx.AsyncBaseTransport | None = Depends(get_webhook_transport),
) -> QARunExecutor:
    return QARunExecutor(
        registry,
        renderer,
        settings,
        link_transport=link_transport,
        webhook_transport=webhook_transport,
    )
