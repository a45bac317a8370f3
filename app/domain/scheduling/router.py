"""Scheduling router - FastAPI endpoints for sessions, conflicts and rooms"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    OverdueSessionResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
)
from .service import SchedulingService, session_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Scheduling"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


# ============================================================================
# SESSIONS
# ============================================================================


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(
    date: Optional[str] = Query(None, description="Practice-local day, YYYY-MM-DD"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    therapist_id: Optional[int] = Query(None, alias="therapistId"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_sessions(
        current_user,
        date=date,
        start_date=start_date,
        end_date=end_date,
        therapist_id=therapist_id,
        client_id=client_id,
        status=status,
    )


@router.get("/sessions/overdue", response_model=list[OverdueSessionResponse])
async def list_overdue_sessions(
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Past sessions still marked scheduled"""
    return service.list_overdue(current_user)


@router.post("/sessions/check-conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    data: ConflictCheckRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.check_conflicts(
        current_user,
        data.therapist_id,
        data.session_date,
        data.duration,
        room_id=data.room_id,
        exclude_session_id=data.exclude_session_id,
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return session_to_response(service.get_session(session_id, current_user))


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(
    data: SessionCreate,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Schedule a session; 409 with the conflicting sessions unless allowConflicts is set"""
    return service.create_session(data, current_user)


@router.put("/sessions/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    data: SessionUpdate,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.update_session(session_id, data, current_user)


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def delete_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.delete_session(session_id, current_user)


@router.get("/clients/{client_id}/sessions", response_model=list[SessionResponse])
async def list_client_sessions(
    client_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_client_sessions(client_id, current_user)


# ============================================================================
# ROOMS
# ============================================================================


@router.get("/rooms", response_model=list[RoomResponse])
async def list_rooms(
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_rooms(current_user)


@router.post("/rooms", response_model=RoomResponse, status_code=201)
async def create_room(
    data: RoomCreate,
    current_user: User = Depends(require_roles("admin")),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.create_room(data, current_user)


@router.put("/rooms/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: int,
    data: RoomUpdate,
    current_user: User = Depends(require_roles("admin")),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.update_room(room_id, data, current_user)


@router.delete("/rooms/{room_id}", response_model=MessageResponse)
async def deactivate_room(
    room_id: int,
    current_user: User = Depends(require_roles("admin")),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.deactivate_room(room_id, current_user)


__all__ = [
    "router",
    "list_sessions",
    "list_overdue_sessions",
    "check_conflicts",
    "get_session",
    "create_session",
    "update_session",
    "delete_session",
    "list_client_sessions",
    "list_rooms",
    "create_room",
    "update_room",
    "deactivate_room",
]
