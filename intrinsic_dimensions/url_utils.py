"""Shared URL utilities — normalize page URLs and derive store keys."""

from __future__ import annotations

import hashlib
from urllib.parse import urlparse


def normalize_url(url: str) -> str:
    """Normalize a page URL so visits to the same page share a key.

    Fragments never reach the server and are dropped.
    """
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"
    query = ""
    if parsed.query:
        query = "?" + "&".join(sorted(parsed.query.split("&")))
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}{query}"


def page_id_from_url(url: str) -> str:
    """Stable 12-char key for a page in the measurement store."""
    return hashlib.md5(normalize_url(url).encode()).hexdigest()[:12]
