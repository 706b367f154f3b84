"""
Tests for the integration store.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from connectors.store import IntegrationStore, TokenUpdate
from database.models import User
from utils.errors import AlreadyConnected
from utils.timeutils import as_utc


class TestTokenUpdate:
    def test_empty(self):
        assert TokenUpdate().is_empty
        assert TokenUpdate().changed_fields() == []

    def test_changed_fields(self):
        update = TokenUpdate(access_token="a", refresh_token=None, expires_at=None)
        assert not update.is_empty
        assert update.changed_fields() == ["access_token"]


class TestIntegrationStore:
    @pytest.mark.asyncio
    async def test_create_and_find(self, session, user, now):
        store = IntegrationStore(session)
        await store.create(user.user_id, "google", "at-1", "rt-1", now, scopes=["s"])
        await store.commit()

        found = await store.find(str(user.user_id), "google")
        assert found is not None
        assert found.access_token == "at-1"
        assert found.refresh_token == "rt-1"
        assert found.scopes == ["s"]

    @pytest.mark.asyncio
    async def test_find_with_malformed_id_returns_none(self, session):
        store = IntegrationStore(session)
        assert await store.find("not-a-uuid", "google") is None
        assert await store.find_all("not-a-uuid") == []

    @pytest.mark.asyncio
    async def test_second_create_for_same_provider_conflicts(self, session, user, now):
        store = IntegrationStore(session)
        await store.create(user.user_id, "google", "at-1", "rt-1", now)
        await store.commit()

        with pytest.raises(AlreadyConnected):
            await store.create(user.user_id, "google", "at-x", "rt-x", now)

        found = await store.find(user.user_id, "google")
        assert found.access_token == "at-1"

    @pytest.mark.asyncio
    async def test_constraint_conflict_keeps_the_surrounding_transaction(
        self, session_factory, session, user, now
    ):
        store = IntegrationStore(session)
        existing = await store.create(user.user_id, "google", "at-1", "rt-1", now)
        await store.commit()

        user.display_name = "Ada L."
        await session.flush()
        with patch.object(store, "find", AsyncMock(return_value=None)):
            with pytest.raises(AlreadyConnected):
                await store.create(user.user_id, "google", "at-x", "rt-x", now)

        assert existing.access_token == "at-1"
        await store.commit()

        async with session_factory() as fresh:
            reloaded = await fresh.get(User, user.user_id)
            rows = await IntegrationStore(fresh).find_all(user.user_id)
        assert reloaded.display_name == "Ada L."
        assert [i.access_token for i in rows] == ["at-1"]

    @pytest.mark.asyncio
    async def test_find_all_is_scoped_to_user(self, session, user, other_user, now):
        store = IntegrationStore(session)
        await store.create(user.user_id, "google", "at-1", "rt-1", now)
        await store.create(other_user.user_id, "google", "at-b", "rt-b", now)
        await store.commit()

        mine = await store.find_all(user.user_id)
        assert [i.access_token for i in mine] == ["at-1"]

    @pytest.mark.asyncio
    async def test_upsert_only_overwrites_given_fields(self, session_factory, session, user, now):
        store = IntegrationStore(session)
        integration = await store.create(user.user_id, "google", "at-1", "rt-1", now)
        await store.commit()

        new_expiry = now + timedelta(hours=1)
        await store.upsert_tokens(
            integration.integration_id,
            TokenUpdate(access_token="at-2", expires_at=new_expiry),
        )
        await store.commit()

        async with session_factory() as fresh:
            reloaded = await IntegrationStore(fresh).find(user.user_id, "google")
        assert reloaded.access_token == "at-2"
        assert reloaded.refresh_token == "rt-1"
        assert as_utc(reloaded.expires_at) == new_expiry

    @pytest.mark.asyncio
    async def test_upsert_unknown_integration_raises(self, session):
        store = IntegrationStore(session)
        with pytest.raises(LookupError):
            await store.upsert_tokens(
                "00000000-0000-0000-0000-000000000000", TokenUpdate(access_token="x")
            )

    @pytest.mark.asyncio
    async def test_delete(self, session, user, now):
        store = IntegrationStore(session)
        integration = await store.create(user.user_id, "google", "at-1", "rt-1", now)
        await store.delete(integration)
        await store.commit()
        assert await store.find(user.user_id, "google") is None
