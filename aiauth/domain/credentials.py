"""Domain entities for stored authentication profiles."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping

from aiauth.domain.exceptions import StoreDecodeError

STORE_VERSION = 1


class CredentialKind(str, Enum):
    """Discriminator for the ``type`` field of a stored credential."""

    OAUTH = "oauth"
    TOKEN = "token"
    API_KEY = "api_key"


# Resolution priority: lower wins.
KIND_PRIORITY: Dict[CredentialKind, int] = {
    CredentialKind.OAUTH: 0,
    CredentialKind.TOKEN: 1,
    CredentialKind.API_KEY: 2,
}

_SECRET_FIELDS = ("key", "token", "access", "refresh", "expires", "email")

_KNOWN_KINDS = frozenset(kind.value for kind in CredentialKind)

_KIND_FIELDS: Dict[CredentialKind, frozenset[str]] = {
    CredentialKind.API_KEY: frozenset({"key"}),
    CredentialKind.TOKEN: frozenset({"token", "expires", "email"}),
    CredentialKind.OAUTH: frozenset({"access", "refresh", "expires", "email"}),
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credential:
    """A single stored secret for one provider.

    Only the fields relevant to ``kind`` may be populated; the others stay at
    their empty defaults and are omitted when serialised.
    """

    kind: CredentialKind
    provider: str
    key: str = ""
    token: str = ""
    access: str = ""
    refresh: str = ""
    expires: int = 0
    email: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", CredentialKind(self.kind))
        allowed = _KIND_FIELDS[self.kind]
        stray = [name for name in _SECRET_FIELDS if name not in allowed and getattr(self, name)]
        if stray:
            raise ValueError(
                f"{self.kind.value} credential cannot carry field(s): {', '.join(stray)}"
            )

    @classmethod
    def api_key(cls, provider: str, key: str) -> "Credential":
        return cls(kind=CredentialKind.API_KEY, provider=provider, key=key)

    @classmethod
    def bearer(cls, provider: str, token: str, *, expires: int = 0, email: str = "") -> "Credential":
        return cls(kind=CredentialKind.TOKEN, provider=provider, token=token, expires=expires, email=email)

    @classmethod
    def oauth(
        cls,
        provider: str,
        access: str,
        refresh: str,
        expires: int,
        *,
        email: str = "",
    ) -> "Credential":
        return cls(
            kind=CredentialKind.OAUTH,
            provider=provider,
            access=access,
            refresh=refresh,
            expires=expires,
            email=email,
        )

    @property
    def secret(self) -> str:
        """The value a caller would present to the provider."""
        if self.kind is CredentialKind.OAUTH:
            return self.access
        if self.kind is CredentialKind.TOKEN:
            return self.token
        return self.key

    def is_expired(self, at_ms: int | None = None) -> bool:
        """``expires`` of zero means the credential never expires."""
        reference = now_ms() if at_ms is None else at_ms
        return self.expires > 0 and self.expires < reference

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind.value, "provider": self.provider}
        for name in _SECRET_FIELDS:
            value = getattr(self, name)
            if value:
                payload[name] = value
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        if not isinstance(data, Mapping):
            raise StoreDecodeError(f"credential must be an object, got {type(data).__name__}")
        raw_kind = data.get("type")
        try:
            kind = CredentialKind(raw_kind)
        except ValueError as exc:
            raise StoreDecodeError(f"unknown credential type {raw_kind!r}") from exc

        provider = data.get("provider")
        if not isinstance(provider, str):
            raise StoreDecodeError("credential is missing a provider")

        # Fields belonging to other kinds are dropped rather than rejected.
        values: Dict[str, Any] = {}
        for name in _KIND_FIELDS[kind]:
            if name not in data or data[name] is None:
                continue
            value = data[name]
            if name == "expires":
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise StoreDecodeError(f"credential 'expires' must be a number, got {value!r}")
                value = int(value)
            elif not isinstance(value, str):
                raise StoreDecodeError(f"credential field {name!r} must be a string")
            values[name] = value
        return cls(kind=kind, provider=provider, **values)


@dataclass
class AuthDocument:
    """Root of the persisted ``auth-profiles.json`` document.

    ``lastGood`` and ``usageStats`` belong to other tools sharing the file and
    are kept as raw JSON. Profiles whose ``type`` is not a known kind are kept
    raw in ``foreign_profiles``; they are never resolution candidates but are
    written back on save.
    """

    version: int = STORE_VERSION
    profiles: Dict[str, Credential] = field(default_factory=dict)
    foreign_profiles: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    last_good: Dict[str, Any] = field(default_factory=dict)
    usage_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        raw_profiles: Dict[str, Any] = {name: dict(raw) for name, raw in self.foreign_profiles.items()}
        raw_profiles.update((name, cred.to_dict()) for name, cred in self.profiles.items())
        payload: Dict[str, Any] = {
            "version": self.version,
            "profiles": dict(sorted(raw_profiles.items())),
        }
        if self.last_good:
            payload["lastGood"] = dict(self.last_good)
        if self.usage_stats:
            payload["usageStats"] = {name: dict(stats) for name, stats in self.usage_stats.items()}
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> "AuthDocument":
        if not isinstance(data, Mapping):
            raise StoreDecodeError("auth document must be a JSON object")

        version = data.get("version", STORE_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise StoreDecodeError(f"auth document version must be an integer, got {version!r}")

        raw_profiles = data.get("profiles") or {}
        raw_last_good = data.get("lastGood") or {}
        raw_usage = data.get("usageStats") or {}
        for label, value in (("profiles", raw_profiles), ("lastGood", raw_last_good), ("usageStats", raw_usage)):
            if not isinstance(value, Mapping):
                raise StoreDecodeError(f"'{label}' must be a JSON object")

        profiles: Dict[str, Credential] = {}
        foreign: Dict[str, Dict[str, Any]] = {}
        for name, raw in raw_profiles.items():
            if not isinstance(raw, Mapping):
                raise StoreDecodeError(f"profile {name!r}: credential must be an object, got {type(raw).__name__}")
            kind = raw.get("type")
            if not isinstance(kind, str) or kind not in _KNOWN_KINDS:
                foreign[name] = dict(raw)
                continue
            try:
                profiles[name] = Credential.from_dict(raw)
            except (StoreDecodeError, ValueError) as exc:
                raise StoreDecodeError(f"profile {name!r}: {exc}") from exc

        for name, stats in raw_usage.items():
            if not isinstance(stats, Mapping):
                raise StoreDecodeError(f"usage stats for {name!r} must be a JSON object")

        return cls(
            version=version,
            profiles=profiles,
            foreign_profiles=foreign,
            last_good=dict(raw_last_good),
            usage_stats={name: dict(stats) for name, stats in raw_usage.items()},
        )


__all__ = [
    "STORE_VERSION",
    "CredentialKind",
    "KIND_PRIORITY",
    "Credential",
    "AuthDocument",
    "now_ms",
]
