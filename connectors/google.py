"""
GoogleConnector: OAuth2 web flow for Google Calendar.

Token endpoint traffic goes through ``httpx.AsyncClient``.  Pass a custom
``transport`` (e.g. ``httpx.MockTransport``) to talk to a fake endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector
from utils.errors import (
    ConfigurationError,
    CredentialRevoked,
    InvalidCode,
    ProviderError,
    RefreshFailed,
)

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

_TIMEOUT = httpx.Timeout(10.0)

# Token-endpoint error codes meaning the grant itself is dead
_REVOKED_ERRORS = {"invalid_grant", "unauthorized_client"}


def _error_code(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    error = body.get("error", "") if isinstance(body, dict) else ""
    return error if isinstance(error, str) else ""


def _token_payload(resp: httpx.Response) -> Dict[str, Any]:
    """Decode a 200 token-endpoint body.  Raises ``ValueError`` or ``KeyError``."""
    body = resp.json()
    if not isinstance(body, dict):
        raise ValueError("token response is not an object")
    if not body["access_token"]:
        raise KeyError("access_token")
    return body


class GoogleConnector(BaseConnector):
    """OAuth2 connector for Google Calendar."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else config.google_client_id
        self.client_secret = (
            client_secret if client_secret is not None else config.google_client_secret
        )
        self.redirect_uri = redirect_uri or config.google_redirect_uri
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Google Calendar"

    @property
    def default_scopes(self) -> List[str]:
        return list(config.google_scopes)

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=_TIMEOUT)

    def build_authorization_url(self, scopes: Optional[List[str]], state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes or self.default_scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange auth code for tokens, then look up the account email."""
        async with self._client() as client:
            try:
                token_resp = await client.post(
                    _GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
            except httpx.HTTPError as exc:
                logger.error("Google code exchange transport error: %s", exc)
                raise ProviderError("Could not reach the provider")

            if token_resp.status_code >= 500:
                logger.error("Google code exchange failed: %s", token_resp.status_code)
                raise ProviderError(upstream_status=token_resp.status_code)
            if token_resp.status_code != 200:
                logger.warning(
                    "Google rejected authorization code: %s %s",
                    token_resp.status_code,
                    _error_code(token_resp),
                )
                raise InvalidCode(details={"error": _error_code(token_resp)})
            try:
                token_data = _token_payload(token_resp)
            except (ValueError, KeyError) as exc:
                logger.error("Google code exchange returned an unusable body: %s", exc)
                raise ProviderError(upstream_status=token_resp.status_code)

            account_email = None
            try:
                headers = {"Authorization": f"Bearer {token_data['access_token']}"}
                user_resp = await client.get(_GOOGLE_USERINFO_URL, headers=headers)
                if user_resp.status_code == 200:
                    account_email = user_resp.json().get("email")
            except (httpx.HTTPError, ValueError, AttributeError) as exc:
                logger.warning("Google userinfo lookup failed: %s", exc)

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in"),
            "scopes": token_data.get("scope", "").split(),
            "account_email": account_email,
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Use the refresh token to get a new access token."""
        async with self._client() as client:
            try:
                resp = await client.post(
                    _GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
            except httpx.HTTPError as exc:
                logger.warning("Google token refresh transport error: %s", exc)
                raise RefreshFailed(details={"reason": str(exc)})

        if resp.status_code == 200:
            try:
                data = _token_payload(resp)
            except (ValueError, KeyError) as exc:
                logger.warning("Google token refresh returned an unusable body: %s", exc)
                raise RefreshFailed(details={"reason": "malformed token response"})
            return {
                "access_token": data["access_token"],
                "expires_in": data.get("expires_in"),
                "refresh_token": data.get("refresh_token"),
            }

        error = _error_code(resp)
        if error in _REVOKED_ERRORS:
            raise CredentialRevoked(details={"error": error})
        if error == "invalid_client":
            logger.error("Google rejected client credentials during refresh")
            raise ConfigurationError()
        raise RefreshFailed(details={"status": resp.status_code, "error": error})

    async def revoke_token(self, token: str) -> bool:
        """Revoke the token at Google."""
        try:
            async with self._client() as client:
                resp = await client.post(_GOOGLE_REVOKE_URL, params={"token": token})
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Google token revocation failed: %s", exc)
            return False
