"""
Token manager: decide whether a stored access token is usable, refresh it
when it is not, and persist whatever the provider handed back.

States
------
``FRESH``        expiry is more than the skew window away; nothing to do.
``NEAR_EXPIRY``  expiry falls inside the skew window; refresh pre-emptively.
``EXPIRED``      expiry has passed or is unknown; refresh before any use.
``REVOKED``      the provider refused the refresh grant; terminal for the
                 request, the user has to reconnect.

The refresh call and the write that records its result are one step with a
direct return value (:class:`~connectors.store.TokenUpdate`), so the caller
never builds a client before the new token is durable.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from config.settings import config
from connectors.base import BaseConnector
from connectors.models import Integration
from connectors.store import IntegrationStore, TokenUpdate
from utils.errors import CredentialRevoked
from utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_EXPIRES_IN = 3600


class TokenState(str, Enum):
    FRESH = "fresh"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"
    REVOKED = "revoked"


def classify(expires_at: Optional[datetime], now: datetime, skew: timedelta) -> TokenState:
    """Classify a token by its expiry.  A missing expiry counts as expired."""
    expires_at = as_utc(expires_at)
    if expires_at is None:
        return TokenState.EXPIRED
    remaining = expires_at - now
    if remaining <= timedelta(0):
        return TokenState.EXPIRED
    if remaining <= skew:
        return TokenState.NEAR_EXPIRY
    return TokenState.FRESH


def diff_tokens(
    integration: Integration, grant: Dict[str, Any], now: datetime
) -> TokenUpdate:
    """
    Build the update for a refresh grant, keeping only fields that differ
    from what is stored.  A grant without a refresh token keeps the old one.
    """
    access_token = grant.get("access_token")
    refresh_token = grant.get("refresh_token")
    expires_in = grant.get("expires_in") or DEFAULT_EXPIRES_IN
    expires_at = now + timedelta(seconds=int(expires_in))

    return TokenUpdate(
        access_token=access_token if access_token and access_token != integration.access_token else None,
        refresh_token=(
            refresh_token if refresh_token and refresh_token != integration.refresh_token else None
        ),
        expires_at=expires_at if expires_at != as_utc(integration.expires_at) else None,
    )


class TokenRefresher:
    """Runs the freshness check and, when needed, the refresh transition."""

    def __init__(
        self,
        store: IntegrationStore,
        connector: BaseConnector,
        *,
        skew: Optional[timedelta] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.connector = connector
        self.skew = skew if skew is not None else timedelta(seconds=config.token_refresh_skew_seconds)
        self.clock = clock

    def state_of(self, integration: Integration) -> TokenState:
        return classify(integration.expires_at, self.clock(), self.skew)

    async def ensure_fresh(self, integration: Integration) -> TokenUpdate:
        """
        Make ``integration`` safe to use for a remote call.

        Returns the update that was applied (empty when the token was
        already fresh).  ``integration`` is updated in place.

        Raises
        ------
        CredentialRevoked
            The provider refused the refresh grant, or there is no refresh
            token to use.  The row is kept and its ``updated_at`` touched.
        RefreshFailed
            Transient provider or network failure; not retried here.
        """
        state = self.state_of(integration)
        if state is TokenState.FRESH:
            return TokenUpdate()

        logger.info(
            "%s token for user %s is %s; refreshing",
            integration.name,
            integration.user_id,
            state.value,
        )
        # Shielded so an aborted request still leaves the stored tokens
        # consistent with what the provider issued.
        return await asyncio.shield(self._refresh_and_persist(integration))

    async def _refresh_and_persist(self, integration: Integration) -> TokenUpdate:
        refresh_token = integration.refresh_token
        try:
            if not refresh_token:
                raise CredentialRevoked(details={"reason": "no refresh token stored"})
            grant = await self.connector.refresh_access_token(refresh_token)
        except CredentialRevoked:
            logger.warning(
                "%s credential for user %s is %s",
                integration.name,
                integration.user_id,
                TokenState.REVOKED.value,
            )
            await self.store.touch(integration.integration_id)
            await self.store.commit()
            raise

        update = diff_tokens(integration, grant, self.clock())
        if not update.is_empty:
            await self.store.upsert_tokens(integration.integration_id, update)
            await self.store.commit()
        logger.info(
            "Refreshed %s token for user %s (changed: %s)",
            integration.name,
            integration.user_id,
            ", ".join(update.changed_fields()) or "nothing",
        )
        return update
