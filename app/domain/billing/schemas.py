"""Billing domain schemas - Pydantic models for the service catalog and session billing"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field

from ...shared.schemas import CamelModel


class ServiceCreate(CamelModel):
    service_code: str = Field(..., min_length=1, max_length=50)
    service_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration: int = Field(..., ge=5, le=480)
    base_rate: float = Field(..., ge=0)
    category: Optional[str] = None
    therapist_visible: bool = True


class ServiceUpdate(CamelModel):
    service_code: Optional[str] = Field(None, min_length=1, max_length=50)
    service_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=5, le=480)
    base_rate: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    is_active: Optional[bool] = None
    therapist_visible: Optional[bool] = None


class ServiceResponse(CamelModel):
    id: int
    service_code: str
    service_name: str
    description: Optional[str] = None
    duration: int
    base_rate: float
    category: Optional[str] = None
    is_active: bool
    therapist_visible: bool


class BillingSessionInfo(CamelModel):
    id: int
    session_date: datetime
    session_type: str
    status: str
    client_id: int
    therapist_id: int


class BillingRecordResponse(CamelModel):
    id: int
    session_id: int
    service_code: str
    service_name: Optional[str] = None
    units: int
    rate_per_unit: float
    total_amount: float
    insurance_covered: bool
    copay_amount: Optional[float] = None
    billing_date: Optional[date] = None
    payment_status: str
    payment_amount: Optional[float] = None
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_notes: Optional[str] = None
    client_name: Optional[str] = None
    therapist_name: Optional[str] = None
    session: Optional[BillingSessionInfo] = None
    created_at: Optional[datetime] = None


class BillingSummary(CamelModel):
    total_billed: float
    total_paid: float
    total_outstanding: float
    pending_count: int
    paid_count: int


class BillingReportResponse(CamelModel):
    records: list[BillingRecordResponse]
    summary: BillingSummary


class BillingStatusUpdate(CamelModel):
    status: str


class PaymentCreate(CamelModel):
    payment_amount: float
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_notes: Optional[str] = None
    payment_date: Optional[date] = None
