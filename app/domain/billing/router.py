"""Billing router - FastAPI endpoints for services, billing reports and payments"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import (
    BillingRecordResponse,
    BillingReportResponse,
    BillingStatusUpdate,
    PaymentCreate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from .service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Billing"])


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    """Dependency injection for BillingService"""
    return BillingService(db)


# ============================================================================
# SERVICE CATALOG
# ============================================================================


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return service.list_services(current_user, include_inactive)


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    current_user: User = Depends(require_roles("admin")),
    service: BillingService = Depends(get_billing_service),
):
    return service.create_service(data, current_user)


@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    current_user: User = Depends(require_roles("admin")),
    service: BillingService = Depends(get_billing_service),
):
    return service.update_service(service_id, data, current_user)


@router.delete("/services/{service_id}", response_model=MessageResponse)
async def deactivate_service(
    service_id: int,
    current_user: User = Depends(require_roles("admin")),
    service: BillingService = Depends(get_billing_service),
):
    return service.deactivate_service(service_id, current_user)


# ============================================================================
# BILLING RECORDS
# ============================================================================


@router.get("/billing/reports", response_model=BillingReportResponse)
async def get_billing_report(
    status: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service_code: Optional[str] = Query(None, alias="serviceCode"),
    therapist_id: Optional[int] = Query(None, alias="therapistId"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    """Billing records with service names and a totals summary"""
    return service.get_report(
        current_user,
        status=status,
        start_date=start_date,
        end_date=end_date,
        service_code=service_code,
        therapist_id=therapist_id,
        client_id=client_id,
    )


@router.put("/billing/{billing_id}/status", response_model=BillingRecordResponse)
async def update_billing_status(
    billing_id: int,
    data: BillingStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return service.update_status(billing_id, data.status, current_user)


@router.post("/billing/{billing_id}/payment", response_model=BillingRecordResponse)
async def record_payment(
    billing_id: int,
    data: PaymentCreate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return service.record_payment(billing_id, data, current_user)


@router.get("/billing/{billing_id}/invoice")
async def download_invoice(
    billing_id: int,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    """Invoice PDF for one billing record"""
    pdf_bytes = service.generate_invoice_pdf(billing_id, current_user)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice-{billing_id}.pdf"'},
    )


__all__ = [
    "router",
    "list_services",
    "create_service",
    "update_service",
    "deactivate_service",
    "get_billing_report",
    "update_billing_status",
    "record_payment",
    "download_invoice",
]
