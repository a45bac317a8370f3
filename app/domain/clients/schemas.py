"""Client domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator

from ...shared.schemas import CamelModel
from ...shared.validators import (
    CLIENT_STAGES,
    CLIENT_STATUSES,
    CLIENT_TYPES,
    GENDERS,
    validate_choice,
    validate_email,
    validate_phone,
)


class ClientFields(CamelModel):
    """Editable client fields shared by create and update"""

    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    pronouns: Optional[str] = None
    preferred_language: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    assigned_therapist_id: Optional[int] = None
    referral_source: Optional[str] = None
    referral_date: Optional[date] = None
    referral_notes: Optional[str] = None
    insurance_provider: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None
    copay_amount: Optional[float] = Field(None, ge=0)
    deductible: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("phone", "emergency_contact_phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("gender")
    @classmethod
    def check_gender(cls, v):
        return validate_choice(v, GENDERS, "gender")


class ClientCreate(ClientFields):
    full_name: str = Field(..., min_length=1, max_length=255)
    status: str = "pending"
    stage: str = "intake"
    client_type: str = "individual"
    preferred_language: Optional[str] = "English"

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, CLIENT_STATUSES, "status")

    @field_validator("stage")
    @classmethod
    def check_stage(cls, v):
        return validate_choice(v, CLIENT_STAGES, "stage")

    @field_validator("client_type")
    @classmethod
    def check_client_type(cls, v):
        return validate_choice(v, CLIENT_TYPES, "client type")


class ClientUpdate(ClientFields):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = None
    stage: Optional[str] = None
    client_type: Optional[str] = None
    next_appointment_date: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, CLIENT_STATUSES, "status")

    @field_validator("stage")
    @classmethod
    def check_stage(cls, v):
        return validate_choice(v, CLIENT_STAGES, "stage")

    @field_validator("client_type")
    @classmethod
    def check_client_type(cls, v):
        return validate_choice(v, CLIENT_TYPES, "client type")


class ClientResponse(CamelModel):
    id: int
    client_id: str
    full_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    pronouns: Optional[str] = None
    preferred_language: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    status: str
    stage: str
    client_type: str
    assigned_therapist_id: Optional[int] = None
    therapist_name: Optional[str] = None
    referral_source: Optional[str] = None
    referral_date: Optional[date] = None
    referral_notes: Optional[str] = None
    insurance_provider: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None
    copay_amount: Optional[float] = None
    deductible: Optional[float] = None
    start_date: Optional[date] = None
    last_session_date: Optional[datetime] = None
    next_appointment_date: Optional[datetime] = None
    has_portal_access: bool = False
    portal_email: Optional[str] = None
    portal_activated_at: Optional[datetime] = None
    portal_last_login: Optional[datetime] = None
    notes: Optional[str] = None
    session_count: Optional[int] = None
    task_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClientListResponse(CamelModel):
    clients: list[ClientResponse]
    total: int
    total_pages: int
    page: int
    page_size: int


class ClientStats(CamelModel):
    total_clients: int
    active_clients: int
    inactive_clients: int
    pending_clients: int
    new_intakes: int
    assessment_phase: int
    psychotherapy: int


class DuplicateClient(CamelModel):
    id: int
    client_id: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None


class DuplicateGroup(CamelModel):
    match_type: str  # email, phone, name_dob
    value: str
    clients: list[DuplicateClient]


class BulkClientIds(CamelModel):
    client_ids: list[int] = Field(..., min_length=1)


class BulkStatusRequest(BulkClientIds):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, CLIENT_STATUSES, "status")


class BulkStageRequest(BulkClientIds):
    stage: str

    @field_validator("stage")
    @classmethod
    def check_stage(cls, v):
        return validate_choice(v, CLIENT_STAGES, "stage")


class BulkReassignRequest(BulkClientIds):
    therapist_id: int


class BulkPortalRequest(BulkClientIds):
    enabled: bool


class PortalInviteRequest(CamelModel):
    portal_email: Optional[str] = None

    @field_validator("portal_email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class PortalInviteResponse(CamelModel):
    activation_url: str
    email_sent: bool
