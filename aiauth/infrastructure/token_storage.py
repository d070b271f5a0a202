"""Infrastructure implementations of auth document persistence."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from aiauth.domain.exceptions import PersistError, StoreDecodeError
from aiauth.domain.token_storage import TokenStorage
from aiauth.infrastructure.log_utils import log_message

FILE_MODE = 0o600
DIR_MODE = 0o755


class JsonFileTokenStorage(TokenStorage):
    """Persist the auth document to a pretty-printed JSON file on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read_document(self) -> Optional[Dict[str, Any]]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            raise StoreDecodeError(f"Malformed auth document {self._path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise StoreDecodeError(f"Auth document {self._path} is not valid UTF-8: {exc}") from exc

    def save_document(self, document: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(document, indent=2)
        except (TypeError, ValueError) as exc:
            raise PersistError(f"Auth document is not serialisable: {exc}") from exc

        try:
            self._path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
        except OSError as exc:
            raise PersistError(f"Failed to write auth document {self._path}: {exc}") from exc

        # os.open only applies the mode on creation.
        try:
            os.chmod(self._path, FILE_MODE)
        except OSError as exc:  # pragma: no cover - depends on platform
            log_message(f"Could not set permissions on {self._path}: {exc}", "WARN")


__all__ = ["JsonFileTokenStorage"]
