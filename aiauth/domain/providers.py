"""Provider capabilities and the registry the resolver consults for refresh."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from aiauth.domain.credentials import Credential


@dataclass
class LoginCallbacks:
    """Hooks an interactive front end supplies to a login flow.

    ``on_auth_url`` displays (or opens) the authorization URL; ``on_prompt``
    shows a message and returns what the user typed. Either may raise to
    abort the login.
    """

    on_auth_url: Optional[Callable[[str], None]] = None
    on_prompt: Optional[Callable[[str], str]] = None


class ProviderCapability(Protocol):
    """Login and refresh operations for one provider."""

    provider_id: str

    def login(self, callbacks: LoginCallbacks) -> Credential:
        """Run an interactive authorization-code exchange and return the new credential."""

    def refresh_token(self, credential: Credential) -> Credential:
        """Return a renewed credential for ``credential``'s refresh secret."""


class ProviderRegistry:
    """Maps provider ids to capabilities. Safe to register into after startup."""

    def __init__(self, providers: Iterable[ProviderCapability] = ()) -> None:
        self._lock = threading.Lock()
        self._providers: Dict[str, ProviderCapability] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ProviderCapability) -> None:
        with self._lock:
            self._providers[provider.provider_id] = provider

    def get(self, provider_id: str) -> Optional[ProviderCapability]:
        with self._lock:
            return self._providers.get(provider_id)

    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        with self._lock:
            return provider_id in self._providers


__all__ = ["LoginCallbacks", "ProviderCapability", "ProviderRegistry"]
