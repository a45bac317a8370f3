"""Portal domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ...shared.schemas import CamelModel, UTCDateTime
from ...shared.validators import SESSION_TYPES, validate_choice

# ============================================
# Auth
# ============================================


class PortalActivateRequest(CamelModel):
    token: str
    password: str


class PortalLoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class PortalForgotPasswordRequest(CamelModel):
    email: str


class PortalResetPasswordRequest(CamelModel):
    token: str
    password: str


class PortalClientResponse(CamelModel):
    id: int
    client_id: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    portal_email: Optional[str] = None
    pronouns: Optional[str] = None
    preferred_language: Optional[str] = None
    assigned_therapist_id: Optional[int] = None
    therapist_name: Optional[str] = None
    practice_name: Optional[str] = None
    next_appointment_date: Optional[datetime] = None
    portal_last_login: Optional[datetime] = None


class PortalLoginResponse(CamelModel):
    client: PortalClientResponse
    message: str = "Login successful"


# ============================================
# Appointments
# ============================================


class PortalSession(CamelModel):
    id: int
    session_date: datetime
    duration: int
    session_type: str
    status: str
    therapist_name: Optional[str] = None
    service_name: Optional[str] = None
    room_name: Optional[str] = None
    booked_via_portal: bool = False


class PortalAppointments(CamelModel):
    upcoming: list[PortalSession]
    past: list[PortalSession]


class PortalServiceResponse(CamelModel):
    id: int
    service_code: str
    service_name: str
    description: Optional[str] = None
    duration: int
    base_rate: float
    category: Optional[str] = None


class AvailableSlot(CamelModel):
    time: str
    session_date: datetime


class BookAppointmentRequest(CamelModel):
    session_date: UTCDateTime
    service_id: Optional[int] = None
    session_type: str = "psychotherapy"
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("session_type")
    @classmethod
    def check_session_type(cls, v):
        return validate_choice(v, SESSION_TYPES, "session type")


# ============================================
# Forms
# ============================================


class SubmitResult(CamelModel):
    id: int
    status: str
    client_submitted_at: Optional[datetime] = None
