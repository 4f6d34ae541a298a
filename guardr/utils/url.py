"""
URL and site identifier helpers.
"""

from __future__ import annotations

import re
from urllib import parse


def extract_host(url: str) -> str:
    """Extract the hostname from a URL string."""
    try:
        parsed = parse.urlparse(url)
        return parsed.hostname or "unknown"
    except ValueError:
        return "unknown"


def site_id(url: str) -> str:
    """Return the identifier learned patterns are filed under.

    ``https://www.Example.com/a`` and ``http://example.com`` both
    map to ``"example.com"``.
    """
    return re.sub(r"^www\.", "", extract_host(url).lower())


def origin(url: str) -> str:
    """Return ``scheme://host:port`` for *url*, or ``""`` when unparseable."""
    try:
        parsed = parse.urlparse(url)
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def is_same_origin(frame_url: str, page_url: str) -> bool:
    """Whether a child frame's document is scriptable from the page.

    ``about:blank`` and ``about:srcdoc`` frames inherit the parent's
    origin.
    """
    if frame_url in ("about:blank", "about:srcdoc", ""):
        return True
    frame_origin = origin(frame_url)
    return bool(frame_origin) and frame_origin == origin(page_url)
