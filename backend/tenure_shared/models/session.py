"""Data models for the shared session and users tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass
class Session:
    """Session record issued by the main application's auth server."""

    id: str
    token: str
    user_id: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        # timestamp columns without time zone are stored in UTC
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at < now


@dataclass
class SessionUser:
    """Authenticated caller attached to a request."""

    id: str
    email: str
    email_verified: bool = False

    @property
    def name(self) -> str:
        # users has no name column
        return self.email
