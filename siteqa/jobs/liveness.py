from __future__ import annotations

from dataclasses import dataclass

import httpx

from siteqa.services.renderer import USER_AGENT

BROKEN_STATUS_THRESHOLD = 400


@dataclass(slots=True, frozen=True)
class LivenessResult:
    ok: bool
    method: str
    status_code: int | None = None
    reason: str | None = None


class LivenessChecker:
    """Checks link targets with HEAD, retrying once with GET.

    Redirect limits come from the client (``httpx.AsyncClient(max_redirects=...)``).
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def check(self, url: str, *, timeout_seconds: float) -> LivenessResult:
        head = await self._attempt("HEAD", url, timeout_seconds)
        if head.ok:
            return head
        return await self._attempt("GET", url, timeout_seconds)

    async def _attempt(self, method: str, url: str, timeout_seconds: float) -> LivenessResult:
        headers = {"User-Agent": USER_AGENT}
        try:
            # Streamed so a GET fallback never downloads the body.
            async with self.client.stream(
                method,
                url,
                headers=headers,
                timeout=timeout_seconds,
                follow_redirects=True,
            ) as response:
                status_code = int(response.status_code)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # IDNA and port errors (ValueError subclasses) are raised while the request is built.
            return LivenessResult(ok=False, method=method, reason=type(exc).__name__)

        if status_code >= BROKEN_STATUS_THRESHOLD:
            return LivenessResult(ok=False, method=method, status_code=status_code, reason=f"http_{status_code}")
        return LivenessResult(ok=True, method=method, status_code=status_code)
