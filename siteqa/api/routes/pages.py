import logging

from fastapi import APIRouter, Depends, Response

from siteqa.core.config import Settings, get_settings
from siteqa.core.errors import ApiError, InvalidRequestError
from siteqa.jobs.content import check_page_content
from siteqa.schemas.pages import (
    CheckContentOut,
    CheckContentRequest,
    FetchPageOut,
    FetchPageRequest,
    ScreenshotRequest,
)
from siteqa.services.images import resize_if_needed
from siteqa.services.renderer import VIEWPORTS, RenderError, get_renderer

router = APIRouter()
logger = logging.getLogger(__name__)

MISSING_URL_MESSAGE = 'Please provide a "url" in the request body'


def _require_url(value: object) -> str:
    if not value or not isinstance(value, str):
        raise InvalidRequestError(MISSING_URL_MESSAGE)
    return value


@router.post("/fetch-page", response_model=FetchPageOut)
async def fetch_page(payload: FetchPageRequest, renderer=Depends(get_renderer)) -> FetchPageOut:
    url = _require_url(payload.url)
    try:
        page = await renderer.fetch_page(url)
    except RenderError as exc:
        logger.error("fetching %s failed: %s", url, exc)
        raise ApiError(500, "Failed to fetch page", str(exc), success=False) from exc
    return FetchPageOut(html=page.html, status_code=page.status_code, headers=page.headers)


@router.post("/screenshot")
async def screenshot(
    payload: ScreenshotRequest,
    settings: Settings = Depends(get_settings),
    renderer=Depends(get_renderer),
) -> Response:
    url = _require_url(payload.url)
    viewport = payload.viewport if payload.viewport in VIEWPORTS else "desktop"
    quality = min(max(payload.quality, 0), 100)
    try:
        captured = await renderer.capture_screenshot(
            url,
            viewport=viewport,
            full_page=payload.full_page,
            quality=quality,
        )
    except RenderError as exc:
        logger.error("screenshot of %s failed: %s", url, exc)
        raise ApiError(500, "Failed to capture screenshot", str(exc), success=False) from exc

    image = resize_if_needed(captured.image, quality=quality, max_dimension=settings.max_image_dimension)
    status = captured.responsiveness.get("status", "ERROR")
    logger.info("screenshot of %s viewport=%s responsiveness=%s", url, viewport, status)
    return Response(
        content=image,
        media_type="image/jpeg",
        headers={"X-Responsiveness-Status": str(status)},
    )


@router.post("/check-content", response_model=CheckContentOut)
async def check_content(
    payload: CheckContentRequest,
    settings: Settings = Depends(get_settings),
    renderer=Depends(get_renderer),
) -> CheckContentOut:
    url = _require_url(payload.url)
    result = await check_page_content(
        url,
        payload.expected_content,
        payload.content_doc_link,
        renderer=renderer,
        doc_timeout_seconds=settings.google_doc_timeout_seconds,
    )
    return CheckContentOut(url=url, content_check=result)
