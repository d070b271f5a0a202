from urllib.parse import parse_qs, urlparse

import pytest
import requests

from aiauth.domain.credentials import Credential, CredentialKind
from aiauth.domain.exceptions import LoginError, RefreshFailedError
from aiauth.domain.pkce import challenge_for
from aiauth.domain.providers import LoginCallbacks
from aiauth.infrastructure import anthropic_provider
from aiauth.infrastructure.anthropic_provider import EXPIRY_BUFFER_MS, AnthropicProvider
from tests.fakes import NOW_MS


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class RecordingPost:
    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        result = self._responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture()
def provider():
    return AnthropicProvider(client_id="client-123", request_timeout=5.0, max_retries=3, backoff_base=0.0, clock=lambda: NOW_MS)


def _expired_oauth(refresh="old-refresh", email="dev@example.com"):
    return Credential.oauth("anthropic", "old-access", refresh, NOW_MS - 1, email=email)


def test_refresh_posts_json_grant_and_builds_credential(provider, monkeypatch):
    post = RecordingPost(
        DummyResponse(payload={"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 3600})
    )
    monkeypatch.setattr(anthropic_provider.requests, "post", post)

    refreshed = provider.refresh_token(_expired_oauth())

    url, kwargs = post.calls[0]
    assert url == anthropic_provider.TOKEN_URL
    assert kwargs["json"] == {"grant_type": "refresh_token", "client_id": "client-123", "refresh_token": "old-refresh"}
    assert kwargs["headers"]["User-Agent"] == "aiauth/1.0"
    assert kwargs["timeout"] == 5.0
    assert refreshed.kind is CredentialKind.OAUTH
    assert refreshed.access == "new-access"
    assert refreshed.refresh == "new-refresh"
    assert refreshed.expires == NOW_MS + 3600 * 1000 - EXPIRY_BUFFER_MS
    assert refreshed.email == "dev@example.com"


def test_refresh_keeps_old_refresh_token_when_not_rotated(provider, monkeypatch):
    monkeypatch.setattr(
        anthropic_provider.requests,
        "post",
        RecordingPost(DummyResponse(payload={"access_token": "new-access", "expires_in": 60})),
    )

    refreshed = provider.refresh_token(_expired_oauth())

    assert refreshed.refresh == "old-refresh"


def test_refresh_without_refresh_token_fails_fast(provider, monkeypatch):
    post = RecordingPost()
    monkeypatch.setattr(anthropic_provider.requests, "post", post)

    with pytest.raises(RefreshFailedError):
        provider.refresh_token(_expired_oauth(refresh=""))
    assert post.calls == []


def test_refresh_rejected_grant_raises_refresh_failed(provider, monkeypatch):
    monkeypatch.setattr(
        anthropic_provider.requests,
        "post",
        RecordingPost(DummyResponse(status_code=400, text='{"error": "invalid_grant"}')),
    )

    with pytest.raises(RefreshFailedError) as excinfo:
        provider.refresh_token(_expired_oauth())
    assert excinfo.value.status_code == 400


def test_refresh_retries_transient_server_errors(provider, monkeypatch):
    post = RecordingPost(
        DummyResponse(status_code=503, text="unavailable"),
        requests.exceptions.ConnectionError("reset"),
        DummyResponse(payload={"access_token": "new-access", "expires_in": 60}),
    )
    monkeypatch.setattr(anthropic_provider.requests, "post", post)

    refreshed = provider.refresh_token(_expired_oauth())

    assert refreshed.access == "new-access"
    assert len(post.calls) == 3


def test_refresh_with_invalid_json_raises_refresh_failed(provider, monkeypatch):
    monkeypatch.setattr(anthropic_provider.requests, "post", RecordingPost(DummyResponse(payload=None)))

    with pytest.raises(RefreshFailedError):
        provider.refresh_token(_expired_oauth())


def test_login_uses_pkce_and_exchanges_pasted_code(provider, monkeypatch):
    post = RecordingPost(
        DummyResponse(payload={"access_token": "acc", "refresh_token": "ref", "expires_in": 28800})
    )
    monkeypatch.setattr(anthropic_provider.requests, "post", post)
    shown = []

    credential = provider.login(
        LoginCallbacks(on_auth_url=shown.append, on_prompt=lambda _message: "  the-code#the-state \n")
    )

    query = parse_qs(urlparse(shown[0]).query)
    verifier = query["state"][0]
    assert query["code_challenge"] == [challenge_for(verifier)]
    assert query["code_challenge_method"] == ["S256"]
    assert query["client_id"] == ["client-123"]
    assert query["scope"] == [anthropic_provider.SCOPES]

    body = post.calls[0][1]["json"]
    assert body["grant_type"] == "authorization_code"
    assert body["code"] == "the-code"
    assert body["state"] == "the-state"
    assert body["code_verifier"] == verifier
    assert credential == Credential.oauth("anthropic", "acc", "ref", NOW_MS + 28800 * 1000 - EXPIRY_BUFFER_MS)


def test_login_requires_prompt_callback(provider):
    with pytest.raises(LoginError):
        provider.login(LoginCallbacks(on_auth_url=lambda _url: None))


def test_login_exchange_failure_raises_login_error(provider, monkeypatch):
    monkeypatch.setattr(
        anthropic_provider.requests,
        "post",
        RecordingPost(DummyResponse(status_code=401, text="denied")),
    )

    with pytest.raises(LoginError):
        provider.login(LoginCallbacks(on_prompt=lambda _message: "code"))


def test_login_wraps_prompt_failure_in_login_error(provider, monkeypatch):
    post = RecordingPost(DummyResponse(payload={"access_token": "acc"}))
    monkeypatch.setattr(anthropic_provider.requests, "post", post)

    def closed_stdin(_message):
        raise EOFError()

    with pytest.raises(LoginError, match="EOFError"):
        provider.login(LoginCallbacks(on_auth_url=lambda _url: None, on_prompt=closed_stdin))
    assert post.calls == []


def test_login_wraps_browser_callback_failure(provider):
    def no_browser(_url):
        raise RuntimeError("display unavailable")

    with pytest.raises(LoginError, match="display unavailable"):
        provider.login(LoginCallbacks(on_auth_url=no_browser, on_prompt=lambda _message: "code"))
