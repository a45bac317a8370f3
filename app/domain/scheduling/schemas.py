"""Scheduling domain schemas - Pydantic models for sessions, rooms and conflicts"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ...shared.schemas import CamelModel, UTCDateTime
from ...shared.validators import SESSION_STATUSES, SESSION_TYPES, validate_choice


class SessionCreate(CamelModel):
    client_id: int
    therapist_id: int
    service_id: Optional[int] = None
    room_id: Optional[int] = None
    session_date: UTCDateTime
    duration: Optional[int] = Field(None, ge=5, le=480)
    session_type: str = "psychotherapy"
    notes: Optional[str] = None
    allow_conflicts: bool = False

    @field_validator("session_type")
    @classmethod
    def check_session_type(cls, v):
        return validate_choice(v, SESSION_TYPES, "session type")


class SessionUpdate(CamelModel):
    therapist_id: Optional[int] = None
    service_id: Optional[int] = None
    room_id: Optional[int] = None
    session_date: Optional[UTCDateTime] = None
    duration: Optional[int] = Field(None, ge=5, le=480)
    session_type: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    allow_conflicts: bool = False

    @field_validator("session_type")
    @classmethod
    def check_session_type(cls, v):
        return validate_choice(v, SESSION_TYPES, "session type")

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, SESSION_STATUSES, "status")


class SessionResponse(CamelModel):
    id: int
    client_id: int
    therapist_id: int
    service_id: Optional[int] = None
    room_id: Optional[int] = None
    session_date: datetime
    duration: int
    session_type: str
    status: str
    notes: Optional[str] = None
    calculated_rate: Optional[float] = None
    booked_via_portal: bool = False
    client_name: Optional[str] = None
    therapist_name: Optional[str] = None
    service_name: Optional[str] = None
    room_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OverdueSessionResponse(SessionResponse):
    days_overdue: int


class ConflictCheckRequest(CamelModel):
    therapist_id: int
    room_id: Optional[int] = None
    session_date: UTCDateTime
    duration: int = Field(50, ge=5, le=480)
    exclude_session_id: Optional[int] = None


class SessionConflict(CamelModel):
    session_id: int
    conflict_type: str  # therapist, room
    session_date: datetime
    duration: int
    client_name: Optional[str] = None
    therapist_name: Optional[str] = None


class ConflictCheckResponse(CamelModel):
    has_conflicts: bool
    conflicts: list[SessionConflict]


class RoomCreate(CamelModel):
    room_number: str = Field(..., min_length=1, max_length=50)
    room_name: str = Field(..., min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=1)
    equipment: list[str] = []
    notes: Optional[str] = None


class RoomUpdate(CamelModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=50)
    room_name: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, ge=1)
    equipment: Optional[list[str]] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class RoomResponse(CamelModel):
    id: int
    room_number: str
    room_name: str
    capacity: Optional[int] = None
    equipment: Optional[list[str]] = None
    is_active: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
