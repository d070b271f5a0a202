from pathlib import Path

import pytest

from aiauth.config import config as config_module
from aiauth.config.config import Settings, get_env


def test_defaults_point_at_shared_profiles_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AIAUTH_STORE_PATH", raising=False)
    settings = Settings(_env_file=None)

    assert settings.store_path == config_module.DEFAULT_STORE_PATH
    assert settings.store_path.name == "auth-profiles.json"
    assert settings.AIAUTH_REQUEST_TIMEOUT == 30.0


def test_store_path_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AIAUTH_STORE_PATH", str(tmp_path / "profiles.json"))

    settings = Settings(_env_file=None)

    assert settings.store_path == tmp_path / "profiles.json"


def test_settings_ignore_unrelated_dotenv_entries(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("ANTHROPIC_API_KEY=sk-test\nAIAUTH_MAX_RETRIES=7\n", encoding="utf-8")

    settings = Settings(_env_file=env_file)

    assert settings.AIAUTH_MAX_RETRIES == 7


def test_explicit_log_path_wins(tmp_path: Path) -> None:
    settings = Settings(_env_file=None, AIAUTH_LOG_PATH=tmp_path / "x.log")

    assert settings.log_path == tmp_path / "x.log"


def test_get_env_coerces_runtime_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AIAUTH_MAX_RETRIES", "9")

    assert get_env("AIAUTH_MAX_RETRIES") == 9


def test_get_env_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AIAUTH_NOT_A_SETTING", raising=False)

    assert get_env("AIAUTH_NOT_A_SETTING", default="fallback") == "fallback"
