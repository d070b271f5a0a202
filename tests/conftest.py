import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are built at import time; keep test runs away from the user's files.
_TEST_STATE = Path(tempfile.mkdtemp(prefix="aiauth-tests-"))
os.environ.setdefault("AIAUTH_LOG_PATH", str(_TEST_STATE / "aiauth.log"))
os.environ.setdefault("AIAUTH_STORE_PATH", str(_TEST_STATE / "auth-profiles.json"))
os.environ.setdefault("AIAUTH_LOG_TO_CONSOLE", "false")

from aiauth.application.resolver import DEFAULT_ENV_VARS  # noqa: E402
from tests.fakes import FakeProvider  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_provider_env(monkeypatch):
    for env_name in DEFAULT_ENV_VARS.values():
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture()
def store_path(tmp_path):
    return tmp_path / "agent" / "auth-profiles.json"


@pytest.fixture()
def fake_provider():
    return FakeProvider()
