"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Depends, Header, HTTPException, Request

from tenure_api.core.config import Settings, get_settings
from tenure_api.core.database import get_database_manager
from tenure_api.services import QueueService, SessionAuthService
from tenure_shared.database import DatabaseManager
from tenure_shared.errors import AuthenticationError
from tenure_shared.models.session import SessionUser
from tenure_shared.repositories import QueueRepository, SessionRepository

logger = logging.getLogger(__name__)


# ============================================
# Database Dependencies
# ============================================


def get_db_manager() -> DatabaseManager | None:
    return get_database_manager()


def get_db_pool(db_manager: DatabaseManager | None = Depends(get_db_manager)) -> asyncpg.Pool:
    if db_manager is None or not db_manager.is_connected:
        raise HTTPException(
            status_code=503,
            detail={"error": "Database not ready", "message": "Database pool is not connected"},
        )
    return db_manager.pool


def get_queue_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> QueueRepository:
    return QueueRepository(pool)


def get_session_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> SessionRepository:
    return SessionRepository(pool)


# ============================================
# Service Dependencies
# ============================================


def get_queue_service(
    repo: QueueRepository = Depends(get_queue_repository),
    settings: Settings = Depends(get_settings),
) -> QueueService:
    """Get QueueService instance (dependency injection)"""
    return QueueService(
        repo,
        max_winners=settings.max_winners_per_payout,
        payout_threshold=settings.default_payout_threshold,
    )


# ============================================
# Authentication Dependencies
# ============================================


async def require_session(
    request: Request,
    authorization: str | None = Header(None),
    repo: SessionRepository = Depends(get_session_repository),
    settings: Settings = Depends(get_settings),
) -> SessionUser:
    """Validate the caller's session and attach the user to request.state"""
    token = SessionAuthService.extract_token(
        request.cookies.get(settings.session_cookie_name), authorization
    )
    try:
        user = await SessionAuthService(repo).authenticate(token)
    except AuthenticationError as e:
        logger.warning(f"Rejected request to {request.url.path}: {e.message}")
        raise HTTPException(status_code=401, detail={"error": e.message}) from None

    request.state.user = user
    return user
