from __future__ import annotations

import asyncio

import httpx

from siteqa.jobs.content import (
    calculate_similarity,
    check_page_content,
    extract_key_phrases,
    normalize_text,
    score_content,
    split_phrases,
)
from siteqa.services.google_docs import extract_doc_id, fetch_google_doc_text, is_published_doc_url
from siteqa.services.renderer import RenderError

EXPECTED = (
    "Acme builds reliable rockets for small teams. "
    "Every launch includes mission planning support.\n"
    "- Contact our sales engineers today"
)


class FakeTextRenderer:
    def __init__(self, texts: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.texts = texts or {}
        self.error = error
        self.calls: list[tuple[str, bool]] = []

    async def extract_text(self, url: str, *, main_content: bool = True) -> str:
        self.calls.append((url, main_content))
        if self.error is not None:
            raise self.error
        return self.texts.get(url, "")


def test_normalize_text_strips_entities_and_punctuation() -> None:
    assert normalize_text("Rockets &amp; Launches!\n\tFast.") == "rockets   launches  fast"
    assert normalize_text(None) == ""


def test_extract_key_phrases_keeps_long_fragments() -> None:
    assert extract_key_phrases(EXPECTED) == [
        "Acme builds reliable rockets for small teams",
        "Every launch includes mission planning support",
        "Contact our sales engineers today",
    ]
    assert extract_key_phrases("Short. Also short") == []


def test_similarity_counts_unique_expected_words() -> None:
    similarity = calculate_similarity("rockets rockets for teams", "Rockets built for large teams")
    assert similarity.matched_words == ["rockets", "for", "teams"]
    assert similarity.match_percentage == 100
    assert similarity.extra_words == ["built", "large"]

    partial = calculate_similarity("alpha bravo charlie delta", "alpha bravo")
    assert partial.match_percentage == 50
    assert partial.unmatched_words == ["charlie", "delta"]


def test_split_phrases_uses_word_ratio() -> None:
    matched, missing = split_phrases(EXPECTED, "Acme builds reliable rockets. Contact sales engineers.")
    assert matched == [
        "Acme builds reliable rockets for small teams",
        "Contact our sales engineers today",
    ]
    assert missing == ["Every launch includes mission planning support"]


def test_score_content_passes_identical_text() -> None:
    result = score_content(EXPECTED, EXPECTED)
    assert result["status"] == "PASS"
    assert result["matchPercentage"] == 100
    assert result["missingPhrases"] == []
    assert result["contentChecked"] is True


def test_score_content_fails_unrelated_text() -> None:
    result = score_content(EXPECTED, "Completely different words about gardening and weather")
    assert result["status"] == "FAIL"
    assert result["matchPercentage"] < 50


def test_score_content_warns_on_missing_phrase() -> None:
    actual = (
        "Acme builds reliable rockets for small teams. Every launch includes mission planning support. "
        "Contact our team today."
    )
    result = score_content(EXPECTED, actual)
    assert result["matchPercentage"] == 89
    assert result["missingPhrases"] == ["Contact our sales engineers today"]
    assert result["status"] == "WARNING"
    assert result["issue"] == "1 key phrase(s) may be missing from page"


def test_check_page_content_skips_without_expected_text() -> None:
    renderer = FakeTextRenderer()
    result = asyncio.run(check_page_content("https://site.example.com/", None, None, renderer=renderer))
    assert result["status"] == "SKIPPED"
    assert result["reason"] == "No expected content provided"
    assert renderer.calls == []


def test_check_page_content_reports_render_errors() -> None:
    renderer = FakeTextRenderer(error=RenderError("timeout"))
    result = asyncio.run(check_page_content("https://site.example.com/", EXPECTED, None, renderer=renderer))
    assert result["status"] == "ERROR"
    assert result["issue"] == "Failed to check content: timeout"


def test_check_page_content_scores_main_content() -> None:
    renderer = FakeTextRenderer({"https://site.example.com/": EXPECTED})
    result = asyncio.run(check_page_content("https://site.example.com/", EXPECTED, None, renderer=renderer))
    assert result["status"] == "PASS"
    assert renderer.calls == [("https://site.example.com/", True)]


def test_google_doc_urls() -> None:
    assert extract_doc_id("https://docs.google.com/document/d/1AbC_d-9/edit?usp=sharing") == "1AbC_d-9"
    assert extract_doc_id("https://example.com/doc") is None
    assert is_published_doc_url("https://docs.google.com/document/d/e/2PACX-xyz/pub")
    assert not is_published_doc_url("https://docs.google.com/document/d/1AbC/edit")


def test_google_doc_export_is_tried_first() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text="  Exported document body text  ", request=request)

    renderer = FakeTextRenderer()
    text = asyncio.run(
        fetch_google_doc_text(
            "https://docs.google.com/document/d/doc123/edit",
            renderer=renderer,
            transport=httpx.MockTransport(handler),
        )
    )
    assert text == "Exported document body text"
    assert requested == ["https://docs.google.com/document/d/doc123/export?format=txt"]
    assert renderer.calls == []


def test_google_doc_falls_back_to_published_view() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, request=request)

    renderer = FakeTextRenderer({"https://docs.google.com/document/d/doc123/pub": "Published copy of the brief"})
    text = asyncio.run(
        fetch_google_doc_text(
            "https://docs.google.com/document/d/doc123/edit",
            renderer=renderer,
            transport=httpx.MockTransport(handler),
        )
    )
    assert text == "Published copy of the brief"
    assert renderer.calls == [("https://docs.google.com/document/d/doc123/pub", False)]


def test_unreadable_doc_link_skips_content_check() -> None:
    async def run() -> dict:
        renderer = FakeTextRenderer()
        return await check_page_content(
            "https://site.example.com/",
            "",
            "https://example.com/not-a-doc",
            renderer=renderer,
        )

    result = asyncio.run(run())
    assert result["status"] == "SKIPPED"
    assert result["reason"].startswith("Could not fetch content from Google Doc link")
    assert result["contentDocLink"] == "https://example.com/not-a-doc"
