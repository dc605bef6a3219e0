"""Data models for active_member_queue_view rows and derived queue statistics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

# subscription_status values that still count as a paying subscription
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


@dataclass
class QueueMember:
    """One eligible member as materialized by active_member_queue_view.

    Read-only: rows appear and disappear as the underlying memberships,
    subscriptions and payments change.
    """

    queue_position: int
    user_id: str
    email: str = ""
    is_eligible: bool = False
    lifetime_payment_total: Decimal = Decimal(0)
    has_received_payout: bool = False
    membership_id: str | None = None
    full_name: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    user_created_at: datetime | None = None
    subscription_id: str | None = None
    subscription_status: str | None = None
    provider_subscription_id: str | None = None
    join_date: date | datetime | None = None
    verification_status: str | None = None
    member_status: str | None = None
    member_status_id: int | None = None
    tenure_start_date: datetime | None = None
    last_payment_date: datetime | None = None
    total_successful_payments: int = 0
    meets_time_requirement: bool = False
    calculated_at: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.queue_position, bool) or not isinstance(self.queue_position, int):
            raise ValueError(f"queue_position must be an integer, got {self.queue_position!r}")
        if self.queue_position < 1:
            raise ValueError(f"queue_position must be >= 1, got {self.queue_position}")
        if not self.user_id:
            raise ValueError("user_id is required")
        self.user_id = str(self.user_id)
        self.email = self.email or ""
        self.is_eligible = bool(self.is_eligible)
        self.has_received_payout = bool(self.has_received_payout)
        self.meets_time_requirement = bool(self.meets_time_requirement)
        self.total_successful_payments = int(self.total_successful_payments or 0)
        self.lifetime_payment_total = _to_decimal(self.lifetime_payment_total)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> QueueMember:
        """Build from a view row, ignoring columns this model does not know."""
        data = dict(row)
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @property
    def subscription_active(self) -> bool:
        if self.subscription_status is None:
            return True
        return self.subscription_status.lower() in ACTIVE_SUBSCRIPTION_STATUSES

    @property
    def display_name(self) -> str:
        if self.full_name and self.full_name.strip():
            return self.full_name.strip()
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email or self.user_id


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"lifetime_payment_total is not numeric: {value!r}") from None


@dataclass
class QueueStatistics:
    """Aggregate view of the queue, recomputed on every request."""

    total_members: int = 0
    active_members: int = 0
    eligible_members: int = 0
    total_revenue: Decimal = Decimal(0)
    potential_winners: int = 0
    payout_threshold: int = 500000
    received_payouts: int = 0

    @classmethod
    def from_members(
        cls,
        members: Iterable[QueueMember],
        *,
        max_winners: int = 2,
        payout_threshold: int = 500000,
    ) -> QueueStatistics:
        """Reduce a queue snapshot into statistics.

        Every row of the view is an active subscriber, so active_members
        mirrors total_members.
        """
        total = 0
        eligible = 0
        received = 0
        revenue = Decimal(0)
        for member in members:
            total += 1
            if member.is_eligible:
                eligible += 1
            if member.has_received_payout:
                received += 1
            revenue += member.lifetime_payment_total or Decimal(0)

        return cls(
            total_members=total,
            active_members=total,
            eligible_members=eligible,
            total_revenue=revenue,
            potential_winners=min(max(max_winners, 0), eligible),
            payout_threshold=payout_threshold,
            received_payouts=received,
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, revenue as a JSON number)."""
        revenue = self.total_revenue
        return {
            "totalMembers": self.total_members,
            "activeMembers": self.active_members,
            "eligibleMembers": self.eligible_members,
            "totalRevenue": int(revenue) if revenue == revenue.to_integral_value() else float(revenue),
            "potentialWinners": self.potential_winners,
            "payoutThreshold": self.payout_threshold,
            "receivedPayouts": self.received_payouts,
        }
