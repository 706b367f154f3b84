"""
BaseConnector: abstract interface for an OAuth2 provider.

Only Google is wired up, but the credential layer talks to this interface so
tests can substitute a fake provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class BaseConnector(ABC):
    """Abstract base for OAuth2 connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug stored as ``Integration.name``, e.g. 'google'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def default_scopes(self) -> List[str]:
        """OAuth scopes requested when the caller does not pass any."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def build_authorization_url(self, scopes: Optional[List[str]], state: str) -> str:
        """
        Build the provider's consent URL.

        Implementations must request offline access (so a refresh token is
        granted) and force the consent prompt (so the refresh token is
        returned again on re-authorisation).
        """
        ...

    @abstractmethod
    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange a one-time authorization code for an initial token set.

        Returns
        -------
        dict with keys:
            access_token, refresh_token (may be None), expires_in (may be
            None), scopes, account_email (may be None)

        Raises ``InvalidCode`` when the provider rejects the code and
        ``ProviderError`` on transport or server failure.
        """
        ...

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Obtain a new access token.

        Returns
        -------
        dict with keys: access_token, expires_in, (optional) refresh_token

        Raises ``CredentialRevoked`` on an invalid-grant answer and
        ``RefreshFailed`` on transient failure.
        """
        ...

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke the token at the provider (optional).
        Returns True on success, False if unsupported or it failed.
        """
        return False

    def is_configured(self) -> bool:
        return True
