from __future__ import annotations

import asyncio

import pytest

from siteqa.jobs.batch import check_pages, resolve_concurrency
from siteqa.schemas.links import PageCheckResult, PageLinkReport, PageTarget, Verdict


def _targets(count: int) -> list[PageTarget]:
    return [PageTarget(url=f"https://site.example.com/p{index}", page_name=f"Page {index}") for index in range(count)]


def test_results_keep_input_order_and_length() -> None:
    pages = _targets(5)

    async def audit(url: str) -> PageLinkReport:
        # Earlier pages finish last inside each chunk.
        await asyncio.sleep(0.01 * (5 - int(url[-1])))
        return PageLinkReport(overall=Verdict.PASS, total_links=int(url[-1]))

    results = asyncio.run(check_pages(pages, concurrency=3, audit=audit))
    assert [result.url for result in results] == [page.url for page in pages]
    assert [result.page_name for result in results] == [page.page_name for page in pages]
    assert [result.link_checks.total_links for result in results] == [0, 1, 2, 3, 4]


def test_progress_is_reported_once_per_chunk() -> None:
    progress: list[tuple[int, int]] = []

    async def audit(url: str) -> PageLinkReport:
        return PageLinkReport(overall=Verdict.PASS)

    asyncio.run(
        check_pages(
            _targets(2),
            concurrency=1,
            audit=audit,
            on_progress=lambda checked, total: progress.append((checked, total)),
        )
    )
    assert progress == [(1, 2), (2, 2)]


def test_chunk_width_bounds_pages_in_flight() -> None:
    in_flight = 0
    peak = 0
    progress: list[tuple[int, int]] = []

    async def audit(url: str) -> PageLinkReport:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return PageLinkReport(overall=Verdict.PASS)

    asyncio.run(
        check_pages(
            _targets(5),
            concurrency=2,
            audit=audit,
            on_progress=lambda checked, total: progress.append((checked, total)),
        )
    )
    assert peak == 2
    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_audit_exception_is_contained_to_its_page() -> None:
    async def audit(url: str) -> PageLinkReport:
        if url.endswith("p1"):
            raise RuntimeError("browser crashed")
        return PageLinkReport(overall=Verdict.PASS)

    results: list[PageCheckResult] = asyncio.run(check_pages(_targets(3), concurrency=3, audit=audit))
    assert [result.link_checks.overall for result in results] == [Verdict.PASS, Verdict.ERROR, Verdict.PASS]
    assert results[1].link_checks.issue == "Error checking page: browser crashed"


def test_empty_page_list_returns_no_results() -> None:
    async def audit(url: str) -> PageLinkReport:
        raise AssertionError("not called")

    assert asyncio.run(check_pages([], concurrency=5, audit=audit)) == []


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(3, 3), ("8", 8), (0, 5), (-2, 5), (None, 5), ("many", 5)],
)
def test_resolve_concurrency_falls_back_to_default(requested: object, expected: int) -> None:
    assert resolve_concurrency(requested, 5) == expected
