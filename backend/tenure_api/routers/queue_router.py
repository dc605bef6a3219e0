"""Membership queue API routes."""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_serializer

from tenure_api.core.config import Settings, get_settings
from tenure_api.core.dependencies import get_db_manager, get_queue_service, require_session
from tenure_api.services import QueueService
from tenure_shared.database import DatabaseManager
from tenure_shared.errors import NotFoundError, QueueServiceError, ValidationError
from tenure_shared.models.queue import QueueMember
from tenure_shared.models.session import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/queue", tags=["queue"])


# ============================================
# Route lifecycle
# ============================================


@dataclass(frozen=True)
class Supported:
    """Route behaves as documented."""


@dataclass(frozen=True)
class Deprecated:
    """Route still answers but its write path is gone."""

    reason: str


RouteLifecycle = Supported | Deprecated

UPDATE_POSITION = Deprecated("Queue positions are calculated dynamically by the queue view")
ADD_MEMBER = Deprecated("Members join the queue automatically with an active subscription")
REMOVE_MEMBER = Deprecated("Members leave the queue automatically when their subscription ends")


def lifecycle_headers(lifecycle: RouteLifecycle) -> dict[str, str]:
    if isinstance(lifecycle, Deprecated):
        return {"Deprecation": "true", "Warning": f'299 - "{lifecycle.reason}"'}
    return {}


def _deprecated_response(
    lifecycle: Deprecated, data: Any, settings: Settings, *, message: str
) -> JSONResponse:
    """Answer a deprecated mutation: current state, explicit warning, no write."""
    gone = settings.deprecated_mutation_status == 410
    return JSONResponse(
        status_code=settings.deprecated_mutation_status,
        content={
            "success": not gone,
            "data": data,
            "deprecated": True,
            "warning": lifecycle.reason,
            "message": message,
        },
        headers=lifecycle_headers(lifecycle),
    )


# ============================================
# Response / Request Models
# ============================================


class QueueRow(BaseModel):
    queue_position: int
    user_id: str
    id: str | None = None
    member_status: str = "Active"
    is_eligible: bool = False


class QueueStatisticsModel(BaseModel):
    totalMembers: int
    activeMembers: int
    eligibleMembers: int
    totalRevenue: int | float
    potentialWinners: int
    payoutThreshold: int
    receivedPayouts: int


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    filtered: bool


class QueueData(BaseModel):
    queue: list[QueueRow]
    statistics: QueueStatisticsModel
    pagination: Pagination


class QueueResponse(BaseModel):
    success: bool = True
    data: QueueData


class StatisticsResponse(BaseModel):
    success: bool = True
    data: QueueStatisticsModel


class QueueMemberModel(BaseModel):
    """Full view row, returned only by the authenticated single-member lookup."""

    queue_position: int
    user_id: str
    email: str
    full_name: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    membership_id: str | None = None
    is_eligible: bool
    lifetime_payment_total: float
    has_received_payout: bool
    subscription_active: bool
    subscription_status: str | None = None
    member_status: str | None = None
    verification_status: str | None = None
    total_successful_payments: int = 0
    meets_time_requirement: bool = False
    tenure_start_date: datetime | None = None
    last_payment_date: datetime | None = None
    join_date: date | datetime | None = None
    calculated_at: datetime | None = None

    @field_serializer("lifetime_payment_total")
    def _serialize_total(self, value: float) -> float:
        return round(value, 2)

    @classmethod
    def from_member(cls, member: QueueMember) -> "QueueMemberModel":
        data = asdict(member)
        data["lifetime_payment_total"] = float(member.lifetime_payment_total)
        data["subscription_active"] = member.subscription_active
        return cls.model_validate(data)


class QueueMemberResponse(BaseModel):
    success: bool = True
    data: QueueMemberModel


class SearchData(BaseModel):
    queue: list[QueueRow]
    count: int


class SearchResponse(BaseModel):
    success: bool = True
    data: SearchData


class HealthResponse(BaseModel):
    success: bool
    status: str
    timestamp: str
    database: str


def _parse_position(value: Any) -> int | None:
    try:
        position = int(value)
    except (TypeError, ValueError):
        return None
    return position if position >= 1 else None


def _failure(status_code: int, error: str, e: Exception) -> HTTPException:
    message = e.message if isinstance(e, QueueServiceError) else str(e)
    return HTTPException(status_code=status_code, detail={"error": error, "message": message})


# ============================================
# Public Endpoints
# ============================================


@router.get("/health", response_model=HealthResponse)
async def queue_health(
    db_manager: DatabaseManager | None = Depends(get_db_manager),
) -> HealthResponse:
    """Database connectivity check (no auth)."""
    connected = db_manager is not None and await db_manager.check_health()
    return HealthResponse(
        success=connected,
        status="healthy" if connected else "unhealthy",
        timestamp=datetime.now(UTC).isoformat(),
        database="connected" if connected else "disconnected",
    )


# ============================================
# Queue Read Endpoints
# ============================================


@router.get("", response_model=QueueResponse)
async def get_queue(
    search: str | None = Query(None, max_length=200),
    limit: int | None = Query(None, ge=0),
    offset: int | None = Query(None, ge=0),
    current_position: int | None = Query(None, alias="currentPosition", ge=1),
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
) -> QueueResponse:
    """Queue listing; currentPosition returns the five-row neighbourhood."""
    try:
        data = await service.get_queue_view(
            search=search, limit=limit, offset=offset, current_position=current_position
        )
        return QueueResponse(data=QueueData(**data))
    except ValidationError as e:
        raise _failure(400, "Invalid query parameters", e) from None
    except Exception as e:
        logger.exception(f"Queue fetch error: {e}")
        raise _failure(500, "Failed to fetch queue data", e) from None


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
) -> StatisticsResponse:
    try:
        statistics = await service.get_statistics()
        return StatisticsResponse(data=QueueStatisticsModel(**statistics.to_dict()))
    except Exception as e:
        logger.exception(f"Statistics fetch error: {e}")
        raise _failure(500, "Failed to fetch statistics", e) from None


@router.get("/search", response_model=SearchResponse)
async def search_queue(
    q: str = Query("", max_length=200),
    limit: int = Query(50, ge=1, le=500),
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
) -> SearchResponse:
    """Search members by email or name, ordered by position."""
    try:
        rows = await service.search_members(q, limit)
        return SearchResponse(data=SearchData(queue=[QueueRow(**r) for r in rows], count=len(rows)))
    except ValidationError as e:
        raise _failure(400, "Search term is required", e) from None
    except Exception as e:
        logger.exception(f"Queue search error: {e}")
        raise _failure(500, "Failed to search queue", e) from None


@router.get("/{member_id}", response_model=QueueMemberResponse)
async def get_queue_member(
    member_id: str,
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
    settings: Settings = Depends(get_settings),
) -> QueueMemberResponse:
    if not member_id.strip():
        raise HTTPException(status_code=400, detail={"error": "Member ID is required"})
    try:
        member = await service.get_member(member_id)
        return QueueMemberResponse(data=QueueMemberModel.from_member(member))
    except NotFoundError as e:
        logger.info(f"Queue member {member_id} not found")
        raise _failure(settings.not_found_status, "Failed to fetch queue member", e) from None
    except Exception as e:
        logger.exception(f"Queue member fetch error: {e}")
        raise _failure(500, "Failed to fetch queue member", e) from None


# ============================================
# Deprecated Mutation Endpoints
# ============================================


@router.put("/{member_id}/position", deprecated=True)
async def update_queue_position(
    member_id: str,
    body: dict[str, Any] | None = Body(None),
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Deprecated: returns the member's unchanged record."""
    new_position = _parse_position((body or {}).get("newPosition"))
    if not member_id.strip() or new_position is None:
        raise HTTPException(
            status_code=400, detail={"error": "Member ID and new position are required"}
        )
    try:
        member = await service.update_queue_position(member_id, new_position)
    except NotFoundError as e:
        raise _failure(settings.not_found_status, "Failed to update queue position", e) from None
    except Exception as e:
        logger.exception(f"Queue position update error: {e}")
        raise _failure(500, "Failed to update queue position", e) from None

    return _deprecated_response(
        UPDATE_POSITION,
        QueueMemberModel.from_member(member).model_dump(mode="json"),
        settings,
        message="Queue position is read-only; current record returned",
    )


@router.post("", deprecated=True)
async def add_member_to_queue(
    body: dict[str, Any] | None = Body(None),
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Deprecated: returns the member's current record if already queued."""
    body = body or {}
    if not body.get("memberid"):
        raise HTTPException(status_code=400, detail={"error": "Member ID is required"})
    try:
        member = await service.add_member(body)
    except NotFoundError as e:
        raise _failure(settings.not_found_status, "Failed to add member to queue", e) from None
    except Exception as e:
        logger.exception(f"Add member to queue error: {e}")
        raise _failure(500, "Failed to add member to queue", e) from None

    return _deprecated_response(
        ADD_MEMBER,
        QueueMemberModel.from_member(member).model_dump(mode="json"),
        settings,
        message="Queue membership is automatic; current record returned",
    )


@router.delete("/{member_id}", deprecated=True)
async def remove_member_from_queue(
    member_id: str,
    user: SessionUser = Depends(require_session),
    service: QueueService = Depends(get_queue_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Deprecated: no-op."""
    if not member_id.strip():
        raise HTTPException(status_code=400, detail={"error": "Member ID is required"})
    try:
        await service.remove_member(member_id)
    except Exception as e:
        logger.exception(f"Remove member from queue error: {e}")
        raise _failure(500, "Failed to remove member from queue", e) from None

    return _deprecated_response(
        REMOVE_MEMBER,
        None,
        settings,
        message="Queue membership is automatic; nothing was removed",
    )
