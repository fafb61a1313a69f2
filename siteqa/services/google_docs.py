from __future__ import annotations

import logging
import re

import httpx

from siteqa.services.renderer import USER_AGENT, Renderer

logger = logging.getLogger(__name__)

DOC_ID_RE = re.compile(r"/document/d/([a-zA-Z0-9_-]+)")
MIN_EXPORT_CHARS = 10
MIN_PUBLISHED_CHARS = 50


def is_published_doc_url(doc_link: str) -> bool:
    return "/pub" in doc_link and "/document/d/e/" in doc_link


def extract_doc_id(doc_link: str) -> str | None:
    match = DOC_ID_RE.search(doc_link)
    return match.group(1) if match else None


async def fetch_google_doc_text(
    doc_link: str | None,
    *,
    renderer: Renderer,
    timeout_seconds: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Best-effort plain text of a shared Google Doc; empty string when unreadable."""
    if not doc_link:
        return ""

    if is_published_doc_url(doc_link):
        return await _render_text(renderer, doc_link, min_chars=MIN_PUBLISHED_CHARS)

    doc_id = extract_doc_id(doc_link)
    if doc_id is None:
        logger.info("could not extract document id from %s", doc_link)
        return ""

    export_url = f"https://docs.google.com/document/d/{doc_id}/export?format=txt"
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True, transport=transport) as client:
            response = await client.get(export_url, headers={"User-Agent": USER_AGENT})
        if response.status_code == 200 and len(response.text.strip()) > MIN_EXPORT_CHARS:
            logger.info("fetched google doc %s via export (%s chars)", doc_id, len(response.text))
            return response.text.strip()
        logger.info("google doc export returned status %s", response.status_code)
    except httpx.HTTPError as exc:
        logger.info("google doc export failed: %s", exc)

    text = await _render_text(renderer, f"https://docs.google.com/document/d/{doc_id}/pub", min_chars=MIN_EXPORT_CHARS)
    if text:
        return text
    return await _render_text(renderer, doc_link, min_chars=MIN_EXPORT_CHARS)


async def _render_text(renderer: Renderer, url: str, *, min_chars: int) -> str:
    try:
        text = (await renderer.extract_text(url, main_content=False)).strip()
    except Exception as exc:
        logger.info("rendering %s failed: %s", url, exc)
        return ""
    return text if len(text) > min_chars else ""
