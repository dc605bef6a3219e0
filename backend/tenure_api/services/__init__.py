"""Services layer - Business logic

Services are constructed per request from repositories and settings and
accessed through dependency injection.
"""

from .auth_service import SessionAuthService
from .queue_service import QueueService

__all__ = [
    "QueueService",
    "SessionAuthService",
]
