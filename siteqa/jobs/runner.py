from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
import logging
import time
from typing import Any

import httpx
from opentelemetry import trace

from siteqa.core.config import Settings
from siteqa.core.telemetry import annotate_span
from siteqa.jobs.batch import check_pages, resolve_concurrency
from siteqa.jobs.link_audit import open_link_auditor
from siteqa.schemas.links import PageCheckResult, PageTarget
from siteqa.services.registry import Job, JobKind, JobRegistry, JobStage
from siteqa.services.renderer import Renderer
from siteqa.services.webhook import (
    WebhookDeliveryError,
    WebhookForwarder,
    build_rerun_payload,
    build_start_payload,
    page_name_of,
    page_url_of,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_BACKGROUND_TASKS: set[asyncio.Task[None]] = set()


@dataclass(slots=True)
class QARun:
    kind: JobKind
    identifier: str
    webhook_url: str
    pages: list[dict[str, Any]] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)
    project_data: dict[str, Any] = field(default_factory=dict)

    def targets(self) -> list[PageTarget]:
        targets = [PageTarget(url=page_url_of(page), page_name=page_name_of(page)) for page in self.pages]
        return [target for target in targets if target.url]

    def payload(self, results: list[PageCheckResult] | None) -> dict[str, Any]:
        if self.kind is JobKind.START:
            return build_start_payload(self.project_data, self.settings, self.pages, results)
        return build_rerun_payload(self.identifier, self.settings, self.pages, results)

    def new_job(self) -> Job:
        return Job(kind=self.kind, identifier=self.identifier, total_pages=len(self.targets()))


class QARunExecutor:
    """Runs one admitted QA run: link checks, webhook forward, slot release."""

    def __init__(
        self,
        registry: JobRegistry,
        renderer: Renderer,
        settings: Settings,
        *,
        link_transport: httpx.AsyncBaseTransport | None = None,
        webhook_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.renderer = renderer
        self.settings = settings
        self.link_transport = link_transport
        self.webhook_transport = webhook_transport

    async def execute(self, run: QARun, job: Job) -> None:
        key = job.key
        with tracer.start_as_current_span("qa_run") as span:
            annotate_span(span, run_kind=run.kind, run_identifier=run.identifier)
            try:
                logger.info("starting %s for %s with %s pages", run.kind.value, run.identifier, len(run.pages))
                results = await self._check_links(run, job)

                self.registry.update(key, stage=JobStage.FORWARDING, owner=job)
                forwarder = WebhookForwarder(
                    run.webhook_url,
                    timeout_seconds=self.settings.webhook_timeout_seconds,
                    transport=self.webhook_transport,
                )
                status_code = await forwarder.forward(run.kind, run.payload(results))
                logger.info("workflow engine responded %s for %s", status_code, run.identifier)
                self.registry.update(key, stage=JobStage.COMPLETED, owner=job)
            except WebhookDeliveryError as exc:
                logger.error("forwarding failed for %s: %s", run.identifier, exc)
            except Exception:
                logger.exception("background processing failed for %s", run.identifier)
            finally:
                self.registry.release(key, owner=job)

    async def _check_links(self, run: QARun, job: Job) -> list[PageCheckResult] | None:
        targets = run.targets()
        if not targets:
            return None

        concurrency = resolve_concurrency(run.settings.get("concurrency"), self.settings.link_check_concurrency)
        logger.info("checking links for %s pages with concurrency=%s", len(targets), concurrency)

        def on_progress(checked: int, total: int) -> None:
            self.registry.update(job.key, checked_pages=checked, total_pages=total, owner=job)

        started = time.perf_counter()
        try:
            async with open_link_auditor(self.renderer, self.settings, transport=self.link_transport) as auditor:
                results = await check_pages(
                    targets,
                    concurrency=concurrency,
                    audit=auditor.audit,
                    on_progress=on_progress,
                )
        except Exception as exc:
            logger.warning("link checks failed for %s, forwarding unaudited pages: %s", run.identifier, exc)
            return None

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info("link checks completed for %s pages in %.0fms", len(results), elapsed_ms)
        return results


def spawn_run(coro: Coroutine[Any, Any, None], *, name: str | None = None) -> asyncio.Task[None]:
    """Detach ``coro`` from the request; a strong reference is held until it finishes."""
    task = asyncio.create_task(coro, name=name)
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_on_run_done)
    return task


def _on_run_done(task: asyncio.Task[None]) -> None:
    _BACKGROUND_TASKS.discard(task)
    if task.cancelled():
        logger.warning("background run %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.error("background run %s crashed: %s", task.get_name(), exc)
