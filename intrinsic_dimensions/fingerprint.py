"""Content fingerprints — stable digests of an element's ordered source list."""

from __future__ import annotations

import hashlib
import json
from typing import Sequence


def fingerprint(sources: Sequence[str]) -> str:
    """Return the 32-char hex digest of the ordered source list.

    Order matters: ``["a", "b"]`` and ``["b", "a"]`` hash differently.
    """
    encoded = json.dumps(list(sources), separators=(",", ":"))
    return hashlib.md5(encoded.encode()).hexdigest()
