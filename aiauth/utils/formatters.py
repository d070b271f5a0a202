"""Text formatting helpers."""

from __future__ import annotations

MASK_VISIBLE_CHARS = 4
MASK_MIN_LENGTH = 12


def mask_key(secret: str) -> str:
    """Mask ``secret`` for display, keeping only the first and last four characters.

    Short secrets are fully replaced with asterisks.
    """

    secret = secret or ""
    if len(secret) <= MASK_MIN_LENGTH:
        return "*" * len(secret)
    return f"{secret[:MASK_VISIBLE_CHARS]}...{secret[-MASK_VISIBLE_CHARS:]}"
