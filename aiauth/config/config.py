"""
Centralised config for aiauth.

Settings are read from environment variables (and an optional ``.env`` file)
and exposed through a singleton `settings` object.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()

DEFAULT_STORE_PATH = Path.home() / ".openclaw" / "agents" / "main" / "agent" / "auth-profiles.json"
DEFAULT_LOG_DIR = Path.home() / ".local" / "state" / "aiauth"


def _discover_env_file(config_file: Path) -> Path:
    """Return the ``.env`` file to load, preferring the working directory.

    An explicit ``AIAUTH_ENV_FILE`` wins. Otherwise the current directory and
    then the parents of the installed package are searched; when nothing is
    found the working directory path is returned so pydantic simply skips it.
    """

    explicit = os.getenv("AIAUTH_ENV_FILE")
    if explicit:
        return Path(explicit)

    for parent in [Path.cwd(), *config_file.parents]:
        env_file = parent / ".env"
        if env_file.exists():
            return env_file
    return Path.cwd() / ".env"


ENV_FILE_PATH = _discover_env_file(CONFIG_FILE)


T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated aiauth settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # --- STORE ---
    AIAUTH_STORE_PATH: Path = DEFAULT_STORE_PATH

    # --- LOGGING ---
    AIAUTH_LOG_LEVEL: str = "INFO"
    AIAUTH_LOG_TO_CONSOLE: bool = False
    AIAUTH_LOG_PATH: Optional[Path] = None

    # --- HTTP (provider capabilities) ---
    AIAUTH_REQUEST_TIMEOUT: float = Field(default=30.0, gt=0)
    AIAUTH_MAX_RETRIES: int = Field(default=3, ge=1)
    AIAUTH_BACKOFF_BASE: float = Field(default=1.0, ge=0)

    # --- ANTHROPIC OAUTH ---
    ANTHROPIC_OAUTH_CLIENT_ID: str = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"

    # --- DYNAMIC FILE PATHS ---
    @property
    def store_path(self) -> Path:
        """Location of the shared auth-profiles document."""
        return Path(self.AIAUTH_STORE_PATH).expanduser()

    @property
    def log_path(self) -> Path:
        """
        Path for the aiauth log file.

        Falls back to a directory under the user's home when the configured
        location cannot be created, and never raises.
        """
        if self.AIAUTH_LOG_PATH is not None:
            return Path(self.AIAUTH_LOG_PATH).expanduser()
        try:
            DEFAULT_LOG_DIR.mkdir(parents=True, exist_ok=True)
            return DEFAULT_LOG_DIR / "aiauth.log"
        except OSError:
            fallback_dir = Path.home() / ".aiauth"
            return fallback_dir / "aiauth.log"


# Create a single, importable instance of the settings for the entire application.
settings = Settings()


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    When an override is read directly from :mod:`os.environ`, ``parser`` (or the
    inferred type from ``settings``) is used to coerce the string into the
    expected type.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = getattr(settings, name)
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        value = getattr(settings, name)
        if value is not None:
            return value

    return default
