"""Thread-safe, file-backed store of named authentication profiles."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from aiauth.domain.credentials import KIND_PRIORITY, AuthDocument, Credential
from aiauth.domain.token_storage import TokenStorage
from aiauth.infrastructure.log_utils import log_message
from aiauth.infrastructure.token_storage import JsonFileTokenStorage

NamedCredential = Tuple[str, Credential]


class CredentialStore:
    """Owns the in-memory auth document and writes it back on every mutation.

    A single re-entrant lock guards the document and all I/O derived from it.
    Callers that need to read and then conditionally write (the resolver's
    refresh path) hold :meth:`locked` for the whole sequence.
    """

    def __init__(self, path: Path | str | None = None, *, storage: Optional[TokenStorage] = None) -> None:
        if storage is None:
            if path is None:
                raise ValueError("Either path or storage must be provided.")
            storage = JsonFileTokenStorage(path)
        self._storage = storage
        self._path = Path(path) if path is not None else getattr(storage, "path", None)
        self._lock = threading.RLock()
        self._document = AuthDocument()
        self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @contextmanager
    def locked(self) -> Iterator["CredentialStore"]:
        """Hold the store lock across several operations."""
        with self._lock:
            yield self

    def _load(self) -> None:
        raw = self._storage.read_document()
        if raw is None:
            log_message(f"No auth document at {self._path}; starting empty.", "DEBUG")
            self._document = AuthDocument()
            return
        # Parse fully before swapping so a bad file leaves current state intact.
        document = AuthDocument.from_dict(raw)
        self._document = document
        log_message(f"Loaded {len(document.profiles)} auth profile(s) from {self._path}.", "DEBUG")

    def _save(self) -> None:
        self._storage.save_document(self._document.to_dict())

    def reload(self) -> None:
        """Re-read the document from disk, discarding unsaved in-memory changes."""
        with self._lock:
            self._load()

    def profiles(self) -> Dict[str, Credential]:
        with self._lock:
            return dict(self._document.profiles)

    def get_profile(self, name: str) -> Optional[Credential]:
        with self._lock:
            return self._document.profiles.get(name)

    def has_profile(self, name: str) -> bool:
        with self._lock:
            return name in self._document.profiles

    def set_profile(self, name: str, credential: Credential) -> None:
        """Insert or replace ``name`` and persist the whole document."""
        with self._lock:
            self._document.foreign_profiles.pop(name, None)
            self._document.profiles[name] = credential
            self._save()
        log_message(f"Saved profile {name} ({credential.kind.value}, {credential.provider}).", "INFO")

    def update_profile(self, name: str, credential: Credential) -> None:
        """Replace ``name`` in place; identical persistence semantics to :meth:`set_profile`."""
        self.set_profile(name, credential)

    def profiles_for_provider(self, provider: str) -> List[NamedCredential]:
        """Profiles for ``provider`` ordered oauth, token, api_key, then by name."""
        with self._lock:
            matches = [
                (name, cred)
                for name, cred in self._document.profiles.items()
                if cred.provider == provider
            ]
        return sorted(matches, key=lambda item: (KIND_PRIORITY[item[1].kind], item[0]))

    def foreign_profiles(self) -> Dict[str, Dict[str, Any]]:
        """Profiles of unknown kinds, kept only so they survive a save."""
        with self._lock:
            return deepcopy(self._document.foreign_profiles)

    def last_good(self) -> Dict[str, Any]:
        with self._lock:
            return deepcopy(self._document.last_good)

    def usage_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return deepcopy(self._document.usage_stats)

    @property
    def version(self) -> int:
        with self._lock:
            return self._document.version


__all__ = ["CredentialStore", "NamedCredential"]
