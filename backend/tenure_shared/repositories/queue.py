"""Repository for active_member_queue_view (read-only)."""

from __future__ import annotations

import logging

import asyncpg

from tenure_shared.errors import DataAccessError, NotFoundError
from tenure_shared.models.queue import QueueMember

logger = logging.getLogger(__name__)

QUEUE_VIEW = "active_member_queue_view"

_MEMBER_COLUMNS = (
    "queue_position, user_id::text AS user_id, email, is_eligible, "
    "lifetime_payment_total, has_received_payout, membership_id::text AS membership_id, "
    "full_name, first_name, middle_name, last_name, user_created_at, "
    "subscription_id::text AS subscription_id, subscription_status, provider_subscription_id, "
    "join_date, verification_status, member_status, member_status_id, tenure_start_date, "
    "last_payment_date, total_successful_payments, meets_time_requirement, calculated_at"
)


class QueueRepository:
    """Pure SQL reads against the queue view.

    Positions, eligibility and payment totals are computed by the view; this
    class only selects and parses rows.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @staticmethod
    def _parse(rows) -> list[QueueMember]:
        try:
            return [QueueMember.from_row(row) for row in rows]
        except (TypeError, ValueError) as e:
            raise DataAccessError(f"Malformed queue row: {e}") from e

    async def get_all_queue_members(self) -> list[QueueMember]:
        """Full queue snapshot ordered by queue_position ASC."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_MEMBER_COLUMNS} FROM {QUEUE_VIEW} ORDER BY queue_position ASC"
                )
        except (asyncpg.PostgresError, OSError, asyncpg.InterfaceError) as e:
            raise DataAccessError(f"Failed to fetch queue members: {e}") from e
        return self._parse(rows)

    async def get_queue_member_by_id(self, user_id: str) -> QueueMember:
        """Single member by user id. Raises NotFoundError when absent."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_MEMBER_COLUMNS} FROM {QUEUE_VIEW} WHERE user_id::text = $1",
                    str(user_id),
                )
        except (asyncpg.PostgresError, OSError, asyncpg.InterfaceError) as e:
            raise DataAccessError(f"Failed to fetch queue member: {e}") from e
        if not row:
            raise NotFoundError("Queue member not found")
        return self._parse([row])[0]

    async def search_queue_members(self, term: str, limit: int = 50) -> list[QueueMember]:
        """Case-insensitive substring match on email and name columns."""
        pattern = f"%{_escape_like(term)}%"
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_MEMBER_COLUMNS} FROM {QUEUE_VIEW}
                    WHERE email ILIKE $1
                       OR full_name ILIKE $1
                       OR first_name ILIKE $1
                       OR last_name ILIKE $1
                    ORDER BY queue_position ASC
                    LIMIT $2
                    """,
                    pattern,
                    limit,
                )
        except (asyncpg.PostgresError, OSError, asyncpg.InterfaceError) as e:
            raise DataAccessError(f"Failed to search queue members: {e}") from e
        return self._parse(rows)

    async def ping(self) -> bool:
        """Run ``SELECT 1``; False on any failure."""
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning(f"Queue database ping failed: {type(e).__name__}: {e}")
            return False


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
