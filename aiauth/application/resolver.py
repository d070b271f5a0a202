"""Priority resolution of a single usable secret per provider."""

from __future__ import annotations

import os
import threading
from typing import Callable, Dict, Mapping, Optional

from aiauth.application.credential_store import CredentialStore
from aiauth.domain.credentials import Credential, CredentialKind, now_ms
from aiauth.domain.exceptions import (
    NoCredentialsError,
    NoValidCredentialError,
    PersistError,
    ProviderNotRegisteredError,
)
from aiauth.domain.providers import LoginCallbacks, ProviderRegistry
from aiauth.infrastructure.log_utils import log_message
from aiauth.utils.formatters import mask_key

DEFAULT_ENV_VARS: Dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "cohere": "COHERE_API_KEY",
}

MANUAL_SUFFIX = ":manual"
OAUTH_SUFFIX = ":oauth"


def manual_profile_name(provider: str) -> str:
    return f"{provider}{MANUAL_SUFFIX}"


def oauth_profile_name(provider: str) -> str:
    return f"{provider}{OAUTH_SUFFIX}"


def manual_mirror(credential: Credential) -> Credential:
    """Token-kind copy of an OAuth credential for consumers that read ``<provider>:manual``."""
    return Credential.bearer(
        credential.provider,
        credential.access,
        expires=credential.expires,
        email=credential.email,
    )


class EnvVarTable:
    """Provider -> environment variable name, consulted before any stored profile."""

    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        self._lock = threading.Lock()
        self._vars: Dict[str, str] = dict(DEFAULT_ENV_VARS if mapping is None else mapping)

    def register(self, provider: str, env_var: str) -> None:
        with self._lock:
            self._vars[provider] = env_var

    def get(self, provider: str) -> Optional[str]:
        with self._lock:
            return self._vars.get(provider)


class PriorityResolver:
    """Resolves the best usable secret for a provider.

    Priority is: environment variable, then OAuth (refreshed on use when
    expired), then bearer token, then API key. Expired OAuth credentials are
    refreshed lazily and written back through the store while its lock is
    held, so concurrent callers never race to refresh the same profile.
    """

    def __init__(
        self,
        store: CredentialStore,
        registry: Optional[ProviderRegistry] = None,
        env_vars: Optional[EnvVarTable] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._registry = registry or ProviderRegistry()
        self._env_vars = env_vars or EnvVarTable()
        self._environ = environ
        self._clock = clock

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def env_vars(self) -> EnvVarTable:
        return self._env_vars

    def _env_override(self, provider: str) -> Optional[str]:
        env_name = self._env_vars.get(provider)
        if not env_name:
            return None
        environ = os.environ if self._environ is None else self._environ
        value = environ.get(env_name)
        if value:
            log_message(f"Using {env_name} for {provider}.", "DEBUG")
            return value
        return None

    def resolve_key(self, provider: str) -> str:
        """Return a usable secret for ``provider`` or raise a ``ResolutionError``."""
        override = self._env_override(provider)
        if override:
            return override

        with self._store.locked():
            candidates = self._store.profiles_for_provider(provider)
            if not candidates:
                raise NoCredentialsError(provider)

            now = self._clock()
            for name, cred in candidates:
                if cred.kind is CredentialKind.OAUTH:
                    if not cred.access:
                        continue
                    if not cred.is_expired(now):
                        return cred.access
                    refreshed = self._refresh_expired(provider, name, cred)
                    if refreshed is not None:
                        return refreshed.access
                elif cred.kind is CredentialKind.TOKEN:
                    if not cred.token or cred.is_expired(now):
                        continue
                    return cred.token
                elif cred.kind is CredentialKind.API_KEY:
                    if not cred.key:
                        continue
                    return cred.key

        raise NoValidCredentialError(provider)

    def _refresh_expired(self, provider: str, name: str, cred: Credential) -> Optional[Credential]:
        capability = self._registry.get(provider)
        if capability is None:
            log_message(f"Profile {name} is expired and no refresher is registered for {provider}.", "DEBUG")
            return None

        log_message(f"Profile {name} expired; refreshing.", "INFO")
        try:
            refreshed = capability.refresh_token(cred)
        except Exception as exc:  # any refresher failure falls through to the next candidate
            log_message(f"Refresh of {name} failed: {exc}", "WARN")
            return None
        if not refreshed.access:
            log_message(f"Refresh of {name} returned no access token.", "WARN")
            return None

        # In-memory state keeps the refreshed credential even if the write fails.
        try:
            self._store.update_profile(name, refreshed)
        except PersistError as exc:
            log_message(f"Refreshed {name} but could not persist it: {exc}", "ERROR")
        manual_name = manual_profile_name(provider)
        if self._store.has_profile(manual_name):
            try:
                self._store.update_profile(manual_name, manual_mirror(refreshed))
            except PersistError as exc:
                log_message(f"Could not persist {manual_name} mirror: {exc}", "ERROR")

        log_message(f"Refreshed {name} -> {mask_key(refreshed.access)}.", "INFO")
        return refreshed

    def refresh_provider(self, provider: str) -> Credential:
        """Force a refresh of the provider's first OAuth profile regardless of expiry."""
        capability = self._registry.get(provider)
        if capability is None:
            raise ProviderNotRegisteredError(provider)

        with self._store.locked():
            oauth_profiles = [
                (name, cred)
                for name, cred in self._store.profiles_for_provider(provider)
                if cred.kind is CredentialKind.OAUTH
            ]
            if not oauth_profiles:
                raise NoCredentialsError(provider)

            name, cred = oauth_profiles[0]
            refreshed = capability.refresh_token(cred)
            self._store.update_profile(name, refreshed)
            self._store.update_profile(manual_profile_name(provider), manual_mirror(refreshed))
        log_message(f"Manually refreshed {name}.", "INFO")
        return refreshed

    def login(self, provider: str, callbacks: LoginCallbacks) -> Credential:
        """Run the provider's login flow and store the result as ``<provider>:oauth``."""
        capability = self._registry.get(provider)
        if capability is None:
            raise ProviderNotRegisteredError(provider)

        credential = capability.login(callbacks)
        with self._store.locked():
            self._store.set_profile(oauth_profile_name(provider), credential)
            self._store.set_profile(manual_profile_name(provider), manual_mirror(credential))
        log_message(f"Logged in to {provider}.", "INFO")
        return credential


__all__ = [
    "DEFAULT_ENV_VARS",
    "EnvVarTable",
    "PriorityResolver",
    "manual_mirror",
    "manual_profile_name",
    "oauth_profile_name",
]
