"""
Content fingerprints used to decide whether a cached embedding is stale.
"""

import hashlib


def content_hash(text: str) -> str:
    """Return the SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
