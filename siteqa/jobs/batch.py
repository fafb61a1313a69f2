from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
import logging
import math
from typing import Any

from siteqa.schemas.links import PageCheckResult, PageLinkReport, PageTarget

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
AuditFn = Callable[[str], Awaitable[PageLinkReport]]


def resolve_concurrency(requested: Any, default: int) -> int:
    """Use the requested width when it parses to a positive int, else the configured default."""
    try:
        parsed = int(requested)
    except (TypeError, ValueError):
        return max(1, default)
    return parsed if parsed > 0 else max(1, default)


async def check_pages(
    pages: Sequence[PageTarget],
    *,
    concurrency: int,
    audit: AuditFn,
    on_progress: ProgressCallback | None = None,
) -> list[PageCheckResult]:
    """Audit pages in consecutive chunks of ``concurrency``.

    A chunk is awaited in full before the next one starts, and ``on_progress``
    is called once per chunk with ``(completed, total)``. Results keep the
    input order.
    """
    width = max(1, int(concurrency))
    total = len(pages)
    batch_count = math.ceil(total / width) if total else 0
    results: list[PageCheckResult] = []

    for batch_index, start in enumerate(range(0, total, width), start=1):
        batch = pages[start : start + width]
        logger.info("processing link-check batch %s/%s (%s pages)", batch_index, batch_count, len(batch))
        results.extend(await asyncio.gather(*(_check_one(page, audit) for page in batch)))
        if on_progress is not None:
            on_progress(len(results), total)

    return results


async def _check_one(page: PageTarget, audit: AuditFn) -> PageCheckResult:
    url = page.url or ""
    try:
        report = await audit(url)
    except Exception as exc:
        logger.exception("link audit crashed for %s", url)
        report = PageLinkReport.page_error(str(exc))
    return PageCheckResult(url=url, page_name=page.page_name, link_checks=report)
