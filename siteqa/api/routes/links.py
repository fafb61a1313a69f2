from datetime import datetime, timezone
import logging
import time

import httpx
from fastapi import APIRouter, Depends

from siteqa.api.deps import get_link_transport
from siteqa.core.config import Settings, get_settings
from siteqa.core.errors import InvalidRequestError
from siteqa.jobs.batch import check_pages, resolve_concurrency
from siteqa.jobs.link_audit import open_link_auditor
from siteqa.schemas.links import CheckLinksMetadata, CheckLinksRequest, CheckLinksResponse
from siteqa.services.renderer import get_renderer

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/check-links", response_model=CheckLinksResponse)
async def check_links(
    payload: CheckLinksRequest,
    concurrency: str | None = None,
    settings: Settings = Depends(get_settings),
    renderer=Depends(get_renderer),
    link_transport: httpx.AsyncBaseTransport | None = Depends(get_link_transport),
) -> CheckLinksResponse:
    if not payload.pages:
        raise InvalidRequestError("Please provide an array of pages with url and pageName")

    valid_pages = [page for page in payload.pages if page.url]
    if not valid_pages:
        raise InvalidRequestError('No valid pages found. Each page must have a "url" field')
    if len(valid_pages) != len(payload.pages):
        logger.warning("%s invalid pages filtered out", len(payload.pages) - len(valid_pages))

    requested = payload.concurrency if payload.concurrency is not None else concurrency
    width = resolve_concurrency(requested, settings.link_check_concurrency)
    logger.info("checking %s pages with concurrency=%s", len(valid_pages), width)

    started = time.perf_counter()
    async with open_link_auditor(renderer, settings, transport=link_transport) as auditor:
        results = await check_pages(valid_pages, concurrency=width, audit=auditor.audit)
    duration_ms = round((time.perf_counter() - started) * 1000)
    logger.info("completed checking %s pages in %sms", len(results), duration_ms)

    return CheckLinksResponse(
        results=results,
        metadata=CheckLinksMetadata(
            total_pages=len(results),
            duration=f"{duration_ms}ms",
            timestamp=datetime.now(timezone.utc),
        ),
    )
