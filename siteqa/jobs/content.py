from __future__ import annotations

from dataclasses import dataclass, field
import html
import logging
import re
from typing import Any

from siteqa.services.google_docs import fetch_google_doc_text
from siteqa.services.renderer import Renderer

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_PHRASE_SPLIT_RE = re.compile(r"[.\n•\-*]+")

PHRASE_MATCH_RATIO = 0.6
FAIL_BELOW_PERCENT = 50
WARN_BELOW_PERCENT = 75
MAX_MISSING_PHRASES = 10
MAX_MATCHED_PHRASES = 15
PREVIEW_CHARS = 300


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    lowered = html.unescape(text.lower())
    collapsed = _WHITESPACE_RE.sub(" ", lowered)
    return _NON_WORD_RE.sub(" ", collapsed).strip()


def extract_key_phrases(text: str | None) -> list[str]:
    if not text:
        return []
    phrases = (phrase.strip() for phrase in _PHRASE_SPLIT_RE.split(text))
    return [phrase for phrase in phrases if len(phrase) > 10]


def _significant_words(normalized: str, min_length: int) -> list[str]:
    return [word for word in normalized.split() if len(word) > min_length]


def _ordered_unique(words: list[str]) -> list[str]:
    return list(dict.fromkeys(words))


@dataclass(slots=True)
class Similarity:
    match_percentage: int = 0
    matched_words: list[str] = field(default_factory=list)
    unmatched_words: list[str] = field(default_factory=list)
    extra_words: list[str] = field(default_factory=list)

    @property
    def matched_word_count(self) -> int:
        return len(self.matched_words)


def calculate_similarity(expected: str, actual: str) -> Similarity:
    expected_norm = normalize_text(expected)
    actual_norm = normalize_text(actual)
    if not expected_norm or not actual_norm:
        return Similarity()

    expected_words = _ordered_unique(_significant_words(expected_norm, 2))
    if expected_norm == actual_norm:
        return Similarity(match_percentage=100, matched_words=expected_words)

    actual_words = _ordered_unique(_significant_words(actual_norm, 2))
    if not expected_words or not actual_words:
        return Similarity()

    actual_set = set(actual_words)
    expected_set = set(expected_words)
    matched = [word for word in expected_words if word in actual_set]
    return Similarity(
        match_percentage=min(round(len(matched) / len(expected_words) * 100), 100),
        matched_words=matched,
        unmatched_words=[word for word in expected_words if word not in actual_set],
        extra_words=[word for word in actual_words if word not in expected_set],
    )


def split_phrases(expected: str, actual: str) -> tuple[list[str], list[str]]:
    """Return (matched, missing) key phrases of ``expected`` found in ``actual``."""
    actual_norm = normalize_text(actual)
    matched: list[str] = []
    missing: list[str] = []
    for phrase in extract_key_phrases(expected):
        words = _significant_words(normalize_text(phrase), 3)
        if not words:
            continue
        hits = sum(1 for word in words if word in actual_norm)
        if hits / len(words) >= PHRASE_MATCH_RATIO:
            matched.append(phrase)
        else:
            missing.append(phrase)
    return matched[:MAX_MATCHED_PHRASES], missing[:MAX_MISSING_PHRASES]


def score_content(expected: str, actual: str) -> dict[str, Any]:
    similarity = calculate_similarity(expected, actual)
    matched_phrases, missing_phrases = split_phrases(expected, actual)

    status = "PASS"
    issue: str | None = None
    if similarity.match_percentage < FAIL_BELOW_PERCENT:
        status = "FAIL"
        issue = f"Content match is only {similarity.match_percentage}% - significant content differences detected"
    elif similarity.match_percentage < WARN_BELOW_PERCENT:
        status = "WARNING"
        issue = f"Content match is {similarity.match_percentage}% - some expected content may be missing"

    if len(missing_phrases) > 5:
        status = "FAIL"
        issue = f"{len(missing_phrases)} key phrases from expected content not found on page"
    elif missing_phrases and status != "FAIL":
        status = "WARNING"
        issue = f"{len(missing_phrases)} key phrase(s) may be missing from page"

    expected_unique = len(set(_significant_words(normalize_text(expected), 2)))
    return {
        "status": status,
        "issue": issue,
        "matchPercentage": similarity.match_percentage,
        "matchedWordCount": similarity.matched_word_count,
        "matchedWords": similarity.matched_words[:50],
        "unmatchedWords": similarity.unmatched_words[:30],
        "extraWords": similarity.extra_words[:30],
        "matchedPhrases": matched_phrases,
        "missingPhrases": missing_phrases,
        "wordCountExpected": len(expected.split()),
        "wordCountActual": len(actual.split()),
        "contentChecked": True,
        "summary": f"{similarity.matched_word_count} of {expected_unique} expected unique words found on page",
        "expectedContentPreview": expected[:PREVIEW_CHARS],
        "actualContentPreview": actual[:PREVIEW_CHARS],
    }


async def check_page_content(
    page_url: str,
    expected_content: str | None,
    content_doc_link: str | None,
    *,
    renderer: Renderer,
    doc_timeout_seconds: float = 30.0,
) -> dict[str, Any]:
    expected = expected_content or ""
    if not expected.strip() and content_doc_link:
        expected = await fetch_google_doc_text(
            content_doc_link,
            renderer=renderer,
            timeout_seconds=doc_timeout_seconds,
        )

    if not expected.strip():
        reason = (
            "Could not fetch content from Google Doc link (may require public sharing)"
            if content_doc_link
            else "No expected content provided"
        )
        return {
            "status": "SKIPPED",
            "reason": reason,
            "matchPercentage": None,
            "missingPhrases": [],
            "wordCountExpected": 0,
            "wordCountActual": 0,
            "contentChecked": False,
            "contentDocLink": content_doc_link,
        }

    try:
        actual = await renderer.extract_text(page_url, main_content=True)
    except Exception as exc:
        logger.error("content check failed for %s: %s", page_url, exc)
        return {
            "status": "ERROR",
            "issue": f"Failed to check content: {exc}",
            "matchPercentage": None,
            "missingPhrases": [],
            "wordCountExpected": 0,
            "wordCountActual": 0,
            "contentChecked": False,
        }

    result = score_content(expected, actual)
    logger.info(
        "content results for %s status=%s match=%s%% missing_phrases=%s",
        page_url,
        result["status"],
        result["matchPercentage"],
        len(result["missingPhrases"]),
    )
    return result
