"""PKCE (RFC 7636) verifier/challenge generation."""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import NamedTuple

VERIFIER_BYTES = 32


class PKCEPair(NamedTuple):
    verifier: str
    challenge: str


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def challenge_for(verifier: str) -> str:
    """S256 challenge: unpadded base64url of SHA-256 over the verifier's bytes."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce() -> PKCEPair:
    """Generate a code verifier and its S256 code challenge."""
    verifier = _b64url(secrets.token_bytes(VERIFIER_BYTES))
    return PKCEPair(verifier=verifier, challenge=challenge_for(verifier))


__all__ = ["PKCEPair", "generate_pkce", "challenge_for"]
