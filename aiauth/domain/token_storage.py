"""Domain-level protocol for persisting the auth-profiles document."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


class TokenStorage(Protocol):
    """Abstraction over where the raw auth document lives."""

    def read_document(self) -> Optional[Dict[str, Any]]:
        """Return the raw persisted document, or ``None`` when nothing is stored.

        Implementations raise :class:`~aiauth.domain.exceptions.StoreDecodeError`
        when stored content exists but cannot be parsed.
        """

    def save_document(self, document: Dict[str, Any]) -> None:
        """Replace the persisted document, raising ``PersistError`` on failure."""


__all__ = ["TokenStorage"]
