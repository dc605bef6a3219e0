"""Tests for the SQL repositories against a fake asyncpg pool."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from tenure_shared.errors import DataAccessError, NotFoundError
from tenure_shared.repositories.queue import QueueRepository
from tenure_shared.repositories.session import SessionRepository

from .conftest import FakeConnection, FakePool


def view_row(position: int, **overrides) -> dict:
    row = {
        "queue_position": position,
        "user_id": f"user-{position}",
        "email": f"m{position}@example.com",
        "is_eligible": True,
        "lifetime_payment_total": Decimal("25.00"),
        "has_received_payout": False,
        "membership_id": f"membership-{position}",
        "full_name": f"Member {position}",
    }
    row.update(overrides)
    return row


# ============================================================================
# QueueRepository
# ============================================================================


class TestQueueRepository:
    @pytest.mark.asyncio
    async def test_get_all_orders_by_position(self):
        conn = FakeConnection(rows=[view_row(1), view_row(2)])
        repo = QueueRepository(FakePool(conn))

        members = await repo.get_all_queue_members()

        assert [m.queue_position for m in members] == [1, 2]
        query, args = conn.queries[0]
        assert "FROM active_member_queue_view" in query
        assert "ORDER BY queue_position ASC" in query
        assert args == ()

    @pytest.mark.asyncio
    async def test_get_all_empty(self):
        repo = QueueRepository(FakePool(FakeConnection(rows=[])))
        assert await repo.get_all_queue_members() == []

    @pytest.mark.asyncio
    async def test_connection_failure_is_data_access_error(self):
        repo = QueueRepository(FakePool(FakeConnection(error=OSError("connection refused"))))

        with pytest.raises(DataAccessError, match="Failed to fetch queue members"):
            await repo.get_all_queue_members()

    @pytest.mark.asyncio
    async def test_malformed_row_is_data_access_error(self):
        repo = QueueRepository(FakePool(FakeConnection(rows=[view_row(0)])))

        with pytest.raises(DataAccessError, match="Malformed queue row"):
            await repo.get_all_queue_members()

    @pytest.mark.asyncio
    async def test_get_by_id_passes_parameter(self):
        conn = FakeConnection(rows=[view_row(4)])
        repo = QueueRepository(FakePool(conn))

        member = await repo.get_queue_member_by_id("user-4")

        assert member.user_id == "user-4"
        query, args = conn.queries[0]
        assert "WHERE user_id::text = $1" in query
        assert args == ("user-4",)

    @pytest.mark.asyncio
    async def test_get_by_id_not_found(self):
        repo = QueueRepository(FakePool(FakeConnection(rows=[])))

        with pytest.raises(NotFoundError, match="not found"):
            await repo.get_queue_member_by_id("missing")

    @pytest.mark.asyncio
    async def test_search_uses_ilike_and_limit(self):
        conn = FakeConnection(rows=[view_row(2)])
        repo = QueueRepository(FakePool(conn))

        await repo.search_queue_members("50%_off", limit=10)

        query, args = conn.queries[0]
        assert "email ILIKE $1" in query
        assert "LIMIT $2" in query
        assert args == ("%50\\%\\_off%", 10)

    @pytest.mark.asyncio
    async def test_ping(self):
        assert await QueueRepository(FakePool(FakeConnection())).ping() is True
        failing = FakePool(FakeConnection(error=OSError("down")))
        assert await QueueRepository(failing).ping() is False


# ============================================================================
# SessionRepository
# ============================================================================


class TestSessionRepository:
    @pytest.mark.asyncio
    async def test_deleted_session_stops_resolving(self):
        token = f"tok-{uuid4()}"
        conn = FakeConnection(
            rows=[
                {
                    "id": "s1",
                    "token": token,
                    "user_id": "u1",
                    "expires_at": datetime.now(UTC) + timedelta(hours=1),
                }
            ]
        )
        repo = SessionRepository(FakePool(conn))

        first = await repo.get_session_by_token(token)
        assert first is not None and first.user_id == "u1"

        # sign-out deletes the row
        conn.rows = []

        assert await repo.get_session_by_token(token) is None
        assert len(conn.queries) == 2

    @pytest.mark.asyncio
    async def test_missing_session_is_not_remembered(self):
        token = f"tok-{uuid4()}"
        conn = FakeConnection(rows=[])
        repo = SessionRepository(FakePool(conn))

        assert await repo.get_session_by_token(token) is None
        assert await repo.get_session_by_token(token) is None
        assert len(conn.queries) == 2

    @pytest.mark.asyncio
    async def test_user_lookup(self):
        user_id = str(uuid4())
        conn = FakeConnection(rows=[{"id": user_id, "email": "a@example.com", "email_verified": True}])
        repo = SessionRepository(FakePool(conn))

        user = await repo.get_user_by_id(user_id)

        assert user is not None
        assert user.email == "a@example.com"
        assert user.name == "a@example.com"
        assert conn.queries[0][1] == (user_id,)

    @pytest.mark.asyncio
    async def test_user_lookup_is_cached(self):
        user_id = str(uuid4())
        conn = FakeConnection(rows=[{"id": user_id, "email": "b@example.com", "email_verified": False}])
        repo = SessionRepository(FakePool(conn))

        first = await repo.get_user_by_id(user_id)
        second = await repo.get_user_by_id(user_id)

        assert second == first
        assert len(conn.queries) == 1
