"""Shared data models for the Tenure queue service."""

from .queue import QueueMember, QueueStatistics
from .session import Session, SessionUser

__all__ = [
    "QueueMember",
    "QueueStatistics",
    "Session",
    "SessionUser",
]
