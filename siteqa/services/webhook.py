from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx
from opentelemetry import trace

from siteqa.core.telemetry import annotate_span
from siteqa.core.urls import strip_trailing_slashes
from siteqa.schemas.links import PageCheckResult
from siteqa.services.registry import JobKind

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

WEBHOOK_PATHS = {
    JobKind.START: "/qa/start",
    JobKind.RERUN: "/qa/rerun",
}


class WebhookDeliveryError(Exception):
    """Raised when the workflow engine cannot be reached or rejects the payload."""


def page_url_of(page: dict[str, Any]) -> str | None:
    return page.get("page_url") or page.get("pageUrl")


def page_name_of(page: dict[str, Any]) -> str:
    return page.get("page_name") or page.get("pageName") or "Page"


def index_reports(results: Sequence[PageCheckResult]) -> dict[str, dict[str, Any]]:
    """Map slash-stripped audited URLs to serialized link reports; the first result for a URL wins."""
    indexed: dict[str, dict[str, Any]] = {}
    for result in results:
        key = strip_trailing_slashes(result.url)
        if key not in indexed:
            indexed[key] = result.link_checks.model_dump(mode="json", by_alias=True)
    return indexed


def build_start_payload(
    project_data: dict[str, Any],
    settings: dict[str, Any] | None,
    pages: Sequence[dict[str, Any]],
    results: Sequence[PageCheckResult] | None,
) -> dict[str, Any]:
    if results is None:
        enriched = list(pages)
    else:
        reports = index_reports(results)
        enriched = [
            {**page, "link_checks": reports.get(strip_trailing_slashes(page_url_of(page)))}
            for page in pages
        ]
    return {**project_data, **(settings or {}), "pages": enriched}


def build_rerun_payload(
    project_id: str,
    settings: dict[str, Any] | None,
    pages: Sequence[dict[str, Any]],
    results: Sequence[PageCheckResult] | None,
) -> dict[str, Any]:
    if results is None:
        enriched = list(pages)
    else:
        reports = index_reports(results)
        enriched = []
        for page in pages:
            report = reports.get(strip_trailing_slashes(page_url_of(page)))
            if report is None:
                continue
            enriched.append({"page_url": page_url_of(page), "page_name": page_name_of(page), "link_checks": report})
    return {"project_id": project_id, **(settings or {}), "pages": enriched}


class WebhookForwarder:
    def __init__(self, base_url: str, *, timeout_seconds: float = 60.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def url_for(self, kind: JobKind) -> str:
        return f"{self.base_url}{WEBHOOK_PATHS[kind]}"

    async def forward(self, kind: JobKind, payload: dict[str, Any]) -> int:
        url = self.url_for(kind)
        with tracer.start_as_current_span("webhook.forward") as span:
            annotate_span(span, webhook_kind=kind, webhook_pages=len(payload.get("pages") or []))
            logger.info("forwarding %s pages to %s", len(payload.get("pages") or []), url)
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                    response = await client.post(url, json=payload, headers={"Content-Type": "application/json"})
                    response.raise_for_status()
            except httpx.HTTPError as exc:
                raise WebhookDeliveryError(f"webhook delivery to {url} failed: {exc}") from exc
            span.set_attribute("http.status_code", response.status_code)
            return response.status_code
