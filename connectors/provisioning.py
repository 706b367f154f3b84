"""
Credential provisioning: turn a one-time authorization code into the
initial ``Integration`` row for a user.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auth.gate import UserRef, authorize
from connectors.base import BaseConnector
from connectors.models import Integration
from connectors.store import IntegrationStore
from utils.errors import AlreadyConnected
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class Provisioner:
    def __init__(self, session: AsyncSession, connector: BaseConnector):
        self.store = IntegrationStore(session)
        self.connector = connector

    def build_authorization_url(self, scopes: Optional[List[str]], state: str) -> str:
        return self.connector.build_authorization_url(scopes, state)

    async def provision(self, user_id: UserRef, provider: str, code: str) -> Integration:
        """
        Exchange ``code`` and persist the resulting credential.

        The duplicate check runs before the exchange, so a second attempt
        neither spends the code nor touches the existing row.

        Raises ``AlreadyConnected`` or ``InvalidCode``.
        """
        owner_id = authorize(user_id, user_id)
        if await self.store.find(owner_id, provider) is not None:
            logger.info("Provision refused: %s already connected for user %s", provider, owner_id)
            raise AlreadyConnected()

        tokens = await self.connector.exchange_code(code)

        expires_at = None
        if tokens.get("expires_in"):
            expires_at = utcnow() + timedelta(seconds=int(tokens["expires_in"]))
        if not tokens.get("refresh_token"):
            logger.warning("Provider %s granted no refresh token for user %s", provider, owner_id)

        integration = await self.store.create(
            owner_id,
            provider,
            tokens["access_token"],
            tokens.get("refresh_token"),
            expires_at,
            scopes=tokens.get("scopes"),
            account_email=tokens.get("account_email"),
        )
        await self.store.commit()
        logger.info("Provisioned %s for user %s", provider, owner_id)
        return integration
