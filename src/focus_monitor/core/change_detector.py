"""Content fingerprinting for change detection."""

import hashlib
from typing import Optional


def fingerprint(body: str) -> str:
    """Return a 128-bit hex digest of the content.

    Used only for equality comparison between checks, not for security.
    """
    return hashlib.md5(body.encode("utf-8"), usedforsecurity=False).hexdigest()


def has_changed(content_hash: str, last_hash: Optional[str]) -> bool:
    """True on the first-ever check (no previous hash) or when the hash differs."""
    return last_hash is None or content_hash != last_hash
