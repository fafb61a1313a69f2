from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

import httpx
from opentelemetry import trace

from siteqa.core.config import Settings
from siteqa.core.telemetry import annotate_span
from siteqa.core.urls import is_checkable_link, is_denylisted_host, is_same_origin
from siteqa.jobs.liveness import LivenessChecker
from siteqa.schemas.links import MAX_LISTED_LINKS, PageLinkReport, Verdict
from siteqa.services.renderer import LinkRecord, Renderer

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REQUIRED_REL_TOKENS = ("noopener", "noreferrer")


class LinkAuditor:
    def __init__(
        self,
        renderer: Renderer,
        checker: LivenessChecker,
        *,
        external_timeout_seconds: float = 5.0,
        internal_timeout_seconds: float = 10.0,
    ) -> None:
        self.renderer = renderer
        self.checker = checker
        self.external_timeout_seconds = external_timeout_seconds
        self.internal_timeout_seconds = internal_timeout_seconds

    async def audit(self, page_url: str) -> PageLinkReport:
        with tracer.start_as_current_span("link_audit.page") as span:
            annotate_span(span, page_url=page_url)
            try:
                links = await self.renderer.extract_links(page_url)
            except Exception as exc:
                logger.error("could not load %s for link checks: %s", page_url, exc)
                return PageLinkReport.page_error(str(exc))

            report = await self._audit_links(page_url, links)
            annotate_span(span, links_total=report.total_links, links_broken=report.broken_count, verdict=report.overall)
            return report

    async def _audit_links(self, page_url: str, links: list[LinkRecord]) -> PageLinkReport:
        broken_external: list[str] = []
        broken_internal: list[str] = []
        missing_security: list[str] = []
        external_count = 0
        internal_count = 0
        seen: set[str] = set()

        for link in links:
            href = link.href
            if not is_checkable_link(href) or href in seen:
                continue
            seen.add(href)

            try:
                internal = is_same_origin(href, page_url)
            except ValueError:
                logger.info("skipping unparseable link %s on %s", href, page_url)
                continue

            if internal:
                internal_count += 1
                result = await self.checker.check(href, timeout_seconds=self.internal_timeout_seconds)
                if not result.ok:
                    logger.info("broken internal link (%s) on %s: %s", result.reason, page_url, href)
                    broken_internal.append(href)
                continue

            external_count += 1
            if not all(token in link.rel for token in REQUIRED_REL_TOKENS):
                missing_security.append(href)
            if is_denylisted_host(href):
                logger.debug("skipping liveness for denylisted host %s", href)
                continue
            result = await self.checker.check(href, timeout_seconds=self.external_timeout_seconds)
            if not result.ok:
                logger.info("broken external link (%s) on %s: %s", result.reason, page_url, href)
                broken_external.append(href)

        all_broken = broken_external + broken_internal
        has_failures = bool(all_broken) or bool(missing_security)
        report = PageLinkReport(
            overall=Verdict.FAIL if has_failures else Verdict.PASS,
            external_links=external_count,
            internal_links=internal_count,
            total_links=len(links),
            broken_links=all_broken[:MAX_LISTED_LINKS],
            broken_count=len(all_broken),
            broken_external_links=broken_external[:MAX_LISTED_LINKS],
            broken_external_count=len(broken_external),
            broken_internal_links=broken_internal[:MAX_LISTED_LINKS],
            broken_internal_count=len(broken_internal),
            missing_noopener=len(missing_security),
            links_without_noopener=missing_security[:MAX_LISTED_LINKS],
            security_issue=bool(missing_security),
            issue=summarize_issues(len(broken_internal), len(broken_external), len(missing_security)),
        )
        logger.info(
            "link results for %s overall=%s external=%s internal=%s broken_external=%s "
            "broken_internal=%s missing_noopener=%s",
            page_url,
            report.overall.value,
            external_count,
            internal_count,
            len(broken_external),
            len(broken_internal),
            len(missing_security),
        )
        return report


def summarize_issues(broken_internal: int, broken_external: int, missing_security: int) -> str | None:
    issues: list[str] = []
    if broken_internal:
        issues.append(f"{broken_internal} broken internal link{_plural(broken_internal)} found")
    if broken_external:
        issues.append(f"{broken_external} broken external link{_plural(broken_external)} found")
    if missing_security:
        verb = "s are" if missing_security != 1 else " is"
        issues.append(
            f"{missing_security} external link{verb} missing noopener/noreferrer attributes, "
            "creating security vulnerability"
        )
    return "; ".join(issues) or None


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


@asynccontextmanager
async def open_link_auditor(
    renderer: Renderer,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[LinkAuditor]:
    """Yield an auditor whose link checks share one HTTP client for the duration of the block."""
    async with httpx.AsyncClient(max_redirects=settings.link_max_redirects, transport=transport) as client:
        yield LinkAuditor(
            renderer,
            LivenessChecker(client),
            external_timeout_seconds=settings.external_link_timeout_seconds,
            internal_timeout_seconds=settings.internal_link_timeout_seconds,
        )
