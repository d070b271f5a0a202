"""Exception hierarchy for credential storage and resolution."""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for aiauth failures."""


class StoreDecodeError(AuthError):
    """Raised when the persisted auth document cannot be parsed."""


class PersistError(AuthError):
    """Raised when the auth document cannot be written to disk.

    The in-memory document has already been updated when this is raised, so
    it is ahead of what is on disk until the next successful write.
    """


class ResolutionError(AuthError):
    """Base for failures to produce a usable secret for a provider."""

    def __init__(self, message: str, *, provider: str) -> None:
        super().__init__(message)
        self.provider = provider


class NoCredentialsError(ResolutionError):
    """Raised when no profile at all exists for the requested provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"no credentials found for provider {provider!r}", provider=provider)


class NoValidCredentialError(ResolutionError):
    """Raised when every stored candidate was empty, expired or unrefreshable."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"no valid credentials for provider {provider!r}", provider=provider)


class RefreshFailedError(AuthError):
    """Raised by a provider capability when a token refresh does not succeed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LoginError(AuthError):
    """Raised when an interactive login exchange fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderNotRegisteredError(AuthError):
    """Raised when an operation needs a capability that was never registered."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"no provider capability registered for {provider!r}")
        self.provider = provider


__all__ = [
    "AuthError",
    "StoreDecodeError",
    "PersistError",
    "ResolutionError",
    "NoCredentialsError",
    "NoValidCredentialError",
    "RefreshFailedError",
    "LoginError",
    "ProviderNotRegisteredError",
]
