"""Anthropic OAuth capability: PKCE login and refresh-token grant."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import requests

from aiauth.config import settings
from aiauth.domain.credentials import Credential, now_ms
from aiauth.domain.exceptions import LoginError, RefreshFailedError
from aiauth.domain.pkce import generate_pkce
from aiauth.domain.providers import LoginCallbacks
from aiauth.infrastructure.decorators import retry_on_network_error
from aiauth.infrastructure.log_utils import log_message

PROVIDER_ID = "anthropic"

AUTHORIZE_URL = "https://claude.ai/oauth/authorize"
TOKEN_URL = "https://console.anthropic.com/v1/oauth/token"
REDIRECT_URI = "https://console.anthropic.com/oauth/code/callback"
SCOPES = "org:create_api_key user:profile user:inference"
USER_AGENT = "aiauth/1.0"

# Tokens are treated as expired this long before the server says so.
EXPIRY_BUFFER_MS = 5 * 60 * 1000

RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class TokenEndpointError(RuntimeError):
    """Raised when the token endpoint cannot be reached or rejects a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AnthropicProvider:
    """Talks to Anthropic's OAuth endpoints on behalf of the resolver and CLI."""

    provider_id = PROVIDER_ID

    def __init__(
        self,
        client_id: Optional[str] = None,
        *,
        request_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.client_id = client_id or settings.ANTHROPIC_OAUTH_CLIENT_ID
        self._request_timeout = request_timeout if request_timeout is not None else settings.AIAUTH_REQUEST_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.AIAUTH_MAX_RETRIES
        self.backoff_base = backoff_base if backoff_base is not None else settings.AIAUTH_BACKOFF_BASE
        self._clock = clock

    def build_authorize_url(self, challenge: str, state: str) -> str:
        params = {
            "code": "true",
            "client_id": self.client_id,
            "redirect_uri": REDIRECT_URI,
            "response_type": "code",
            "scope": SCOPES,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def login(self, callbacks: LoginCallbacks) -> Credential:
        """Authorization-code-with-PKCE login; the user pastes back ``code#state``."""
        pkce = generate_pkce()
        auth_url = self.build_authorize_url(pkce.challenge, state=pkce.verifier)

        if callbacks.on_prompt is None:
            raise LoginError("an on_prompt callback is required to collect the authorization code")

        try:
            if callbacks.on_auth_url is not None:
                callbacks.on_auth_url(auth_url)
            pasted = (callbacks.on_prompt("Paste the authorization code:") or "").strip()
        except LoginError:
            raise
        except Exception as exc:
            raise LoginError(f"login interrupted: {exc!r}") from exc

        if not pasted:
            raise LoginError("no authorization code entered")

        code, _, state = pasted.partition("#")
        payload = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "state": state,
            "redirect_uri": REDIRECT_URI,
            "code_verifier": pkce.verifier,
        }
        try:
            body = self._post_token("authorization_code", payload)
            credential = self._credential_from(body, fallback_refresh="", email="")
        except TokenEndpointError as exc:
            raise LoginError(f"token exchange failed: {exc}", status_code=exc.status_code) from exc

        log_message("Exchanged Anthropic authorization code for tokens.", "INFO")
        return credential

    def refresh_token(self, credential: Credential) -> Credential:
        if not credential.refresh:
            raise RefreshFailedError("no refresh token available")

        payload = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": credential.refresh,
        }
        try:
            body = self._post_token("refresh_token", payload)
            return self._credential_from(body, fallback_refresh=credential.refresh, email=credential.email)
        except TokenEndpointError as exc:
            raise RefreshFailedError(f"token refresh failed: {exc}", status_code=exc.status_code) from exc

    def _credential_from(self, body: Dict[str, Any], *, fallback_refresh: str, email: str) -> Credential:
        access = body.get("access_token")
        if not access:
            raise TokenEndpointError("token response did not include an access_token")
        try:
            expires_in = int(body.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        expires_at = self._clock() + expires_in * 1000 - EXPIRY_BUFFER_MS
        account = body.get("account") if isinstance(body.get("account"), dict) else {}
        return Credential.oauth(
            PROVIDER_ID,
            access=access,
            refresh=body.get("refresh_token") or fallback_refresh,
            expires=expires_at,
            email=email or str(account.get("email_address") or ""),
        )

    def _should_retry(self, status: int) -> bool:
        return status in RETRYABLE_STATUS

    @retry_on_network_error(lambda self, status: self._should_retry(status), exception_types=(TokenEndpointError,))
    def _post_token(self, grant_type: str, payload: Dict[str, str]) -> Dict[str, Any]:
        """POST a JSON body to the token endpoint and return the decoded response."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        try:
            response = requests.post(TOKEN_URL, json=payload, headers=headers, timeout=self._request_timeout)
        except requests.exceptions.RequestException as exc:
            log_message(f"Anthropic {grant_type} request failed: {exc}", "ERROR")
            raise TokenEndpointError(f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise TokenEndpointError(
                f"{grant_type} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            log_message(f"Failed to parse Anthropic {grant_type} response as JSON: {exc}", "ERROR")
            raise TokenEndpointError(f"invalid JSON in {grant_type} response", status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise TokenEndpointError(f"unexpected {grant_type} response shape", status_code=response.status_code)
        return body


__all__ = ["AnthropicProvider", "TokenEndpointError", "PROVIDER_ID"]
