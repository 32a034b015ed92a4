# src/notestage/utils/url.py
"""URL display helpers."""

from __future__ import annotations

from urllib.parse import urlsplit


def compact_url(url: str) -> str:
    """Return a scheme-less, human friendly rendition of an HTTP(S) URL.

    Non-HTTP URLs (``acct:``, ``mailto:`` and friends) are returned unchanged.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url
    path = parts.path
    if not parts.query and not parts.fragment:
        path = path.rstrip("/")
    query = f"?{parts.query}" if parts.query else ""
    fragment = f"#{parts.fragment}" if parts.fragment else ""
    return f"{parts.netloc}{path}{query}{fragment}"
