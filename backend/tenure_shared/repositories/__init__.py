"""Repository layer for the Tenure queue service."""

from .queue import QueueRepository
from .session import SessionRepository

__all__ = [
    "QueueRepository",
    "SessionRepository",
]
