from __future__ import annotations

from urllib.parse import urlparse

SKIPPED_SCHEMES = (
    "tel:",
    "mailto:",
    "javascript:",
    "data:",
    "blob:",
    "file:",
    "ftp:",
    "sms:",
    "whatsapp:",
    "viber:",
    "skype:",
    "facetime:",
    "maps:",
    "geo:",
)

# Platforms that routinely block automated clients; their links are never checked_links.
LIVENESS_DENYLIST = frozenset(
    {
        "instagram.com",
        "facebook.com",
        "fb.com",
        "twitter.com",
        "x.com",
        "linkedin.com",
        "tiktok.com",
        "pinterest.com",
        "snapchat.com",
        "youtube.com",
        "youtu.be",
        "reddit.com",
        "tumblr.com",
        "discord.com",
        "discord.gg",
        "threads.net",
    }
)

DEFAULT_PORTS = {"http": 80, "https": 443}


def is_checkable_link(href: str | None) -> bool:
    """Only absolute http(s) links are checked_links; everything else is skipped."""
    if not href:
        return False
    lowered = href.strip().lower()
    if lowered.startswith("#") or lowered.startswith("//"):
        return False
    if lowered.startswith(SKIPPED_SCHEMES):
        return False
    return lowered.startswith("http://") or lowered.startswith("https://")


def origin_of(url: str) -> tuple[str, str, int | None]:
    """Return (scheme, host, port) with default ports filled in.

    Raises ValueError for URLs whose port cannot be parsed.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    port = parsed.port
    if port is None:
        port = DEFAULT_PORTS.get(scheme)
    return scheme, host, port


def is_same_origin(url: str, base_url: str) -> bool:
    return origin_of(url) == origin_of(base_url)


def is_denylisted_host(url: str) -> bool:
    try:
        host = (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in LIVENESS_DENYLIST)


def strip_trailing_slashes(url: str | None) -> str:
    return (url or "").rstrip("/")


def urls_match(left: str | None, right: str | None) -> bool:
    return strip_trailing_slashes(left) == strip_trailing_slashes(right)
