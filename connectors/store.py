"""
Credential store: persistence for ``Integration`` rows.

No method here performs authorization.  User-initiated callers must pass
``auth.gate.authorize`` first; the refresh protocol works on an
``Integration`` that was already resolved through the gate.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.models import Integration
from utils.errors import AlreadyConnected
from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

IdLike = Union[str, uuid.UUID]


def _to_uuid(value: IdLike) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class TokenUpdate:
    """Explicit set of credential fields to overwrite; ``None`` means unchanged."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.access_token is None
            and self.refresh_token is None
            and self.expires_at is None
        )

    def changed_fields(self) -> List[str]:
        return [
            name
            for name in ("access_token", "refresh_token", "expires_at")
            if getattr(self, name) is not None
        ]


class IntegrationStore:
    """CRUD over the ``integrations`` table, scoped to one DB session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, user_id: IdLike, provider: str) -> Optional[Integration]:
        uid = _to_uuid(user_id)
        if uid is None:
            return None
        result = await self.session.execute(
            select(Integration).where(
                Integration.user_id == uid,
                Integration.name == provider,
            )
        )
        return result.scalar_one_or_none()

    async def find_all(self, user_id: IdLike) -> Sequence[Integration]:
        uid = _to_uuid(user_id)
        if uid is None:
            return []
        result = await self.session.execute(
            select(Integration).where(Integration.user_id == uid)
        )
        return result.scalars().all()

    async def create(
        self,
        user_id: IdLike,
        provider: str,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
        *,
        scopes: Optional[List[str]] = None,
        account_email: Optional[str] = None,
    ) -> Integration:
        """
        Insert a new integration.

        Raises ``AlreadyConnected`` if (user, provider) already exists.  The
        unique constraint is the final arbiter, so two racing inserts cannot
        both succeed.  A rejected insert is rolled back to its savepoint and
        leaves the rest of the session transaction intact.
        """
        uid = _to_uuid(user_id)
        if await self.find(uid, provider) is not None:
            raise AlreadyConnected()

        now = utcnow()
        integration = Integration(
            integration_id=uuid.uuid4(),
            user_id=uid,
            name=provider,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=scopes or [],
            account_email=account_email,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(integration)
                await self.session.flush()
        except IntegrityError:
            raise AlreadyConnected()

        logger.info("Created %s integration for user %s", provider, uid)
        return integration

    async def upsert_tokens(self, integration_id: IdLike, update: TokenUpdate) -> Integration:
        """
        Overwrite the fields present in ``update`` and bump ``updated_at``
        in the same flush.

        The instance comes from the session identity map, so an
        ``Integration`` already loaded in this request sees the new values.
        """
        integration = await self.session.get(Integration, _to_uuid(integration_id))
        if integration is None:
            raise LookupError(f"integration {integration_id} does not exist")
        if update.is_empty:
            return integration

        if update.access_token is not None:
            integration.access_token = update.access_token
        if update.refresh_token is not None:
            integration.refresh_token = update.refresh_token
        if update.expires_at is not None:
            integration.expires_at = update.expires_at
        integration.updated_at = utcnow()
        await self.session.flush()

        logger.debug(
            "Updated %s for integration %s", ",".join(update.changed_fields()), integration_id
        )
        return integration

    async def touch(self, integration_id: IdLike) -> None:
        """Mark an integration as stale without changing its tokens."""
        integration = await self.session.get(Integration, _to_uuid(integration_id))
        if integration is None:
            return
        integration.updated_at = utcnow()
        await self.session.flush()

    async def delete(self, integration: Integration) -> None:
        await self.session.delete(integration)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()
