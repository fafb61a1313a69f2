from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from functools import lru_cache
import logging
from typing import Any, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from siteqa.core.config import get_settings

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--single-process",
    "--no-zygote",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-sync",
    "--disable-translate",
    "--metrics-recording-only",
    "--mute-audio",
    "--no-first-run",
    "--safebrowsing-disable-auto-update",
]

VIEWPORTS: dict[str, dict[str, int]] = {
    "desktop": {"width": 1920, "height": 1080},
    "tablet": {"width": 768, "height": 1024},
    "mobile": {"width": 375, "height": 667},
}

_EXTRACT_ANCHORS_JS = """
anchors => anchors.map(a => ({
  href: a.href,
  text: (a.textContent || '').trim(),
  target: a.target || '',
  rel: a.rel || ''
}))
"""

_MAIN_TEXT_JS = """
() => {
  const mainSelectors = ['main', 'article', '[role="main"]', '.content', '.main-content', '#content', '#main'];
  let root = null;
  for (const selector of mainSelectors) {
    root = document.querySelector(selector);
    if (root) break;
  }
  const clone = (root || document.body).cloneNode(true);
  const removeSelectors = ['nav', 'header', 'footer', 'aside', '.navigation', '.nav', '.menu',
    '.sidebar', '.footer', '.header', 'script', 'style', 'noscript'];
  removeSelectors.forEach(sel => clone.querySelectorAll(sel).forEach(el => el.remove()));
  return clone.textContent || '';
}
"""

_BODY_TEXT_JS = """
() => {
  const clone = document.body.cloneNode(true);
  clone.querySelectorAll('script, style, noscript, header, footer, nav, [role="navigation"]')
    .forEach(el => el.remove());
  return clone.textContent || '';
}
"""

_EAGER_LOAD_JS = """
async () => {
  document.querySelectorAll('.bricks-lazy-hidden').forEach(el => el.classList.remove('bricks-lazy-hidden'));
  document.querySelectorAll('.lazyload, .lazy, .wp-image-lazy')
    .forEach(el => el.classList.remove('lazyload', 'lazy', 'wp-image-lazy'));
  document.querySelectorAll('img[loading="lazy"]').forEach(img => { img.loading = 'eager'; });
  document.querySelectorAll('img[data-src], img[data-lazy-src]').forEach(img => {
    const realSrc = img.getAttribute('data-src') || img.getAttribute('data-lazy-src');
    if (realSrc) img.src = realSrc;
  });
  document.querySelectorAll('source[data-srcset]').forEach(s => { s.srcset = s.getAttribute('data-srcset'); });
  await new Promise(resolve => {
    let travelled = 0;
    const timer = setInterval(() => {
      window.scrollBy(0, 300);
      travelled += 300;
      if (travelled >= document.body.scrollHeight) {
        clearInterval(timer);
        window.scrollTo(0, 0);
        resolve();
      }
    }, 150);
  });
  const pending = Array.from(document.querySelectorAll('img'))
    .filter(img => !(img.complete && img.naturalHeight > 0))
    .map(img => new Promise(resolve => {
      img.addEventListener('load', resolve, { once: true });
      img.addEventListener('error', resolve, { once: true });
      setTimeout(resolve, 10000);
    }));
  await Promise.all(pending);
}
"""

_RESPONSIVENESS_JS = """
() => {
  const vw = document.documentElement.clientWidth;
  const issues = [];
  const hasHorizontalScroll = document.body.scrollWidth > vw + 2;
  if (hasHorizontalScroll) {
    issues.push(`Horizontal overflow detected (content ${document.body.scrollWidth}px vs viewport ${vw}px)`);
  }
  const viewportMeta = document.querySelector('meta[name="viewport"]');
  const viewportContent = viewportMeta ? (viewportMeta.getAttribute('content') || '') : '';
  if (!viewportMeta) {
    issues.push('Missing <meta name="viewport"> tag');
  } else if (!viewportContent.includes('width=device-width')) {
    issues.push('Viewport meta tag missing width=device-width');
  }
  let smallTouchTargets = 0;
  document.querySelectorAll('a, button, input, select, textarea, [role="button"]').forEach(el => {
    const rect = el.getBoundingClientRect();
    if (rect.width > 0 && rect.height > 0 && (rect.width < 44 || rect.height < 44)) {
      const style = getComputedStyle(el);
      if (style.display !== 'none' && style.visibility !== 'hidden') smallTouchTargets++;
    }
  });
  if (smallTouchTargets > 0) {
    issues.push(`${smallTouchTargets} interactive element(s) smaller than 44x44px minimum touch target`);
  }
  let oversizedImages = 0;
  document.querySelectorAll('img').forEach(img => {
    if (img.naturalWidth > 0 && img.clientWidth > 0 && img.naturalWidth > img.clientWidth * 3) oversizedImages++;
  });
  if (oversizedImages > 0) {
    issues.push(`${oversizedImages} image(s) significantly larger than display size (unoptimized)`);
  }
  return {
    status: issues.length === 0 ? 'PASS' : 'FAIL',
    issues,
    details: { viewportWidth: vw, hasHorizontalScroll, viewportContent, smallTouchTargets, oversizedImages }
  };
}
"""


class RenderError(Exception):
    """Raised when a page cannot be loaded or inspected."""


@dataclass(slots=True)
class LinkRecord:
    href: str
    text: str = ""
    target: str = ""
    rel: list[str] = field(default_factory=list)

    @classmethod
    def from_anchor(cls, raw: dict[str, Any]) -> "LinkRecord":
        rel = raw.get("rel") or ""
        tokens = rel.split() if isinstance(rel, str) else [str(token) for token in rel]
        return cls(
            href=str(raw.get("href") or ""),
            text=str(raw.get("text") or ""),
            target=str(raw.get("target") or ""),
            rel=[token.lower() for token in tokens],
        )


@dataclass(slots=True)
class RenderedPage:
    html: str
    status_code: int
    headers: dict[str, str]


@dataclass(slots=True)
class Screenshot:
    image: bytes
    responsiveness: dict[str, Any]


class Renderer(Protocol):
    async def extract_links(self, url: str) -> list[LinkRecord]: ...

    async def fetch_page(self, url: str) -> RenderedPage: ...

    async def extract_text(self, url: str, *, main_content: bool = True) -> str: ...

    async def capture_screenshot(
        self,
        url: str,
        *,
        viewport: str = "desktop",
        full_page: bool = True,
        quality: int = 70,
    ) -> Screenshot: ...


class PlaywrightRenderer:
    """Headless Chromium renderer; every call runs in its own short-lived browser."""

    def __init__(self, navigation_timeout_ms: int, settle_ms: int) -> None:
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms

    async def extract_links(self, url: str) -> list[LinkRecord]:
        async with self._open(url, wait_until="domcontentloaded") as (page, _):
            anchors = await page.eval_on_selector_all("a[href]", _EXTRACT_ANCHORS_JS)
        logger.info("found %s anchors on %s", len(anchors), url)
        return [LinkRecord.from_anchor(anchor) for anchor in anchors]

    async def fetch_page(self, url: str) -> RenderedPage:
        async with self._open(url, wait_until="load") as (page, response):
            if response is None:
                raise RenderError("No response received from page")
            html = await page.content()
            headers = await response.all_headers()
            status_code = response.status
        logger.info("fetched %s status=%s html_length=%s", url, status_code, len(html))
        return RenderedPage(html=html, status_code=status_code, headers=dict(headers))

    async def extract_text(self, url: str, *, main_content: bool = True) -> str:
        script = _MAIN_TEXT_JS if main_content else _BODY_TEXT_JS
        async with self._open(url, wait_until="domcontentloaded") as (page, _):
            text = await page.evaluate(script)
        return text or ""

    async def capture_screenshot(
        self,
        url: str,
        *,
        viewport: str = "desktop",
        full_page: bool = True,
        quality: int = 70,
    ) -> Screenshot:
        dimensions = VIEWPORTS.get(viewport, VIEWPORTS["desktop"])
        async with self._open(url, wait_until="load", viewport=dimensions) as (page, _):
            await self._settle_lazy_content(page)
            image = await page.screenshot(
                type="jpeg",
                full_page=full_page,
                quality=max(0, min(100, quality)),
            )
            responsiveness = await self._run_responsiveness_checks(page)
        logger.info("captured %s screenshot of %s (%s bytes)", viewport, url, len(image))
        return Screenshot(image=image, responsiveness=responsiveness)

    @asynccontextmanager
    async def _open(
        self,
        url: str,
        *,
        wait_until: str,
        viewport: dict[str, int] | None = None,
    ) -> AsyncIterator[tuple[Page, Any]]:
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
                try:
                    context = await browser.new_context(user_agent=USER_AGENT, viewport=viewport)
                    page = await context.new_page()
                    response = await page.goto(url, wait_until=wait_until, timeout=self.navigation_timeout_ms)
                    await page.wait_for_timeout(self.settle_ms)
                    yield page, response
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise RenderError(str(exc)) from exc

    async def _settle_lazy_content(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=15_000)
        except PlaywrightError:
            pass  # analytics-heavy sites never go idle
        await page.evaluate(_EAGER_LOAD_JS)
        try:
            await page.wait_for_load_state("networkidle", timeout=10_000)
        except PlaywrightError:
            pass
        await page.wait_for_timeout(self.settle_ms)

    async def _run_responsiveness_checks(self, page: Page) -> dict[str, Any]:
        try:
            result = await page.evaluate(_RESPONSIVENESS_JS)
        except PlaywrightError as exc:
            logger.warning("responsiveness checks failed: %s", exc)
            return {"status": "ERROR", "issues": [f"Check failed: {exc}"], "details": {}}
        logger.info("responsiveness %s with %s issue(s)", result["status"], len(result["issues"]))
        return result


@lru_cache
def get_renderer() -> PlaywrightRenderer:
    settings = get_settings()
    return PlaywrightRenderer(
        navigation_timeout_ms=settings.navigation_timeout_ms,
        settle_ms=settings.page_settle_ms,
    )
