"""Queue service: search, position windows and statistics over the queue view."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from typing import Any

from tenure_shared.errors import DeprecatedOperationWarning, ValidationError
from tenure_shared.models.queue import QueueMember, QueueStatistics
from tenure_shared.repositories.queue import QueueRepository

logger = logging.getLogger(__name__)

# Rows shown on each side of the caller's own position
POSITION_WINDOW_RADIUS = 2


class QueueService:
    """API-facing queue operations. Read-only: the view owns all positions."""

    def __init__(
        self,
        repo: QueueRepository,
        *,
        max_winners: int = 2,
        payout_threshold: int = 500000,
    ) -> None:
        self.repo = repo
        self.max_winners = max_winners
        self.payout_threshold = payout_threshold

    # ==================== Pure helpers ====================

    @staticmethod
    def filter_by_search(members: Sequence[QueueMember], search: str) -> list[QueueMember]:
        """Case-insensitive substring match on names, email and identifiers."""
        term = search.lower()
        if not term:
            return list(members)

        def matches(m: QueueMember) -> bool:
            candidates = (
                m.full_name,
                m.first_name,
                m.last_name,
                m.email,
                m.user_id,
                m.membership_id,
            )
            return any(c and term in str(c).lower() for c in candidates)

        return [m for m in members if matches(m)]

    @staticmethod
    def window_by_position(
        members: Sequence[QueueMember], current_position: int, total: int
    ) -> list[QueueMember]:
        """Keep the neighbourhood [p-2, p+2] clamped to [1, total]."""
        start = max(1, current_position - POSITION_WINDOW_RADIUS)
        end = min(total, current_position + POSITION_WINDOW_RADIUS)
        return [m for m in members if start <= m.queue_position <= end]

    @staticmethod
    def paginate(members: Sequence[QueueMember], limit: int, offset: int = 0) -> list[QueueMember]:
        return list(members[offset : offset + limit])

    @staticmethod
    def to_public_row(member: QueueMember) -> dict[str, Any]:
        """Minimal shape exposed by list endpoints; no PII or payment data."""
        return {
            "queue_position": member.queue_position,
            "user_id": member.user_id,
            "id": member.membership_id,
            "member_status": member.member_status or "Active",
            "is_eligible": member.is_eligible or False,
        }

    def compute_statistics(self, members: Sequence[QueueMember]) -> QueueStatistics:
        return QueueStatistics.from_members(
            members, max_winners=self.max_winners, payout_threshold=self.payout_threshold
        )

    # ==================== Read operations ====================

    async def get_queue_view(
        self,
        *,
        search: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        current_position: int | None = None,
    ) -> dict[str, Any]:
        """Queue listing with statistics and pagination metadata.

        current_position takes precedence over limit/offset. Statistics are
        computed from the same snapshot as the listing.
        """
        for name, value in (("limit", limit), ("offset", offset)):
            if value is not None and value < 0:
                raise ValidationError(f"{name} must be a non-negative integer")
        if current_position is not None and current_position < 1:
            raise ValidationError("currentPosition must be a positive integer")

        snapshot = await self.repo.get_all_queue_members()
        total = len(snapshot)

        members: list[QueueMember] = list(snapshot)
        if search:
            members = self.filter_by_search(members, search)

        if current_position is not None:
            members = self.window_by_position(members, current_position, total)
        elif limit is not None:
            members = self.paginate(members, limit, offset or 0)

        queue = [self.to_public_row(m) for m in members]
        statistics = self.compute_statistics(snapshot)

        logger.info(
            f"Queue view: total={total} returned={len(queue)}"
            + (f" position={current_position}" if current_position is not None else "")
        )
        logger.debug(f"Queue rows: {queue}")

        return {
            "queue": queue,
            "statistics": statistics.to_dict(),
            "pagination": {
                "total": total,
                "limit": limit if limit is not None else len(queue),
                "offset": offset if offset is not None else 0,
                "filtered": current_position is not None,
            },
        }

    async def get_statistics(self) -> QueueStatistics:
        members = await self.repo.get_all_queue_members()
        return self.compute_statistics(members)

    async def get_member(self, user_id: str) -> QueueMember:
        if not user_id:
            raise ValidationError("Member ID is required")
        return await self.repo.get_queue_member_by_id(user_id)

    async def search_members(self, term: str, limit: int = 50) -> list[dict[str, Any]]:
        if not term or not term.strip():
            raise ValidationError("Search term is required")
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        members = await self.repo.search_queue_members(term.strip(), limit)
        return [self.to_public_row(m) for m in members]

    # ==================== Deprecated mutations ====================
    # Membership in the view follows subscriptions and payments; these
    # keep the old API answering without writing anything.

    @staticmethod
    def _warn_deprecated(message: str) -> None:
        logger.warning(message)
        warnings.warn(message, DeprecatedOperationWarning, stacklevel=3)

    async def update_queue_position(self, user_id: str, new_position: int) -> QueueMember:
        """Return the member's current record; positions are computed by the view."""
        self._warn_deprecated(
            "update_queue_position() is deprecated - queue positions are calculated dynamically"
        )
        return await self.get_member(user_id)

    async def add_member(self, member_data: dict[str, Any]) -> QueueMember:
        """Return the member's current record; active subscribers join automatically."""
        self._warn_deprecated(
            "add_member() is deprecated - users automatically appear in queue "
            "with active subscriptions"
        )
        user_id = member_data.get("user_id") or member_data.get("memberid")
        return await self.get_member(str(user_id) if user_id else "")

    async def remove_member(self, user_id: str) -> None:
        """No-op; cancelled subscriptions drop out of the view on their own."""
        self._warn_deprecated(
            "remove_member() is deprecated - users automatically excluded "
            "when subscription canceled"
        )
        return None
