"""Billing service - Service catalog, session billing records, payments and invoices"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import TherapySession, User
from ...models_billing import Service, SessionBilling
from ...practice_time import local_date_to_utc_bounds, utcnow
from ...services.pdf_service import InvoicePDFGenerator
from ...shared.validators import validate_payment_status
from .repository import BillingRepository
from .schemas import (
    BillingRecordResponse,
    BillingReportResponse,
    BillingSummary,
    PaymentCreate,
    ServiceCreate,
    ServiceUpdate,
)

logger = logging.getLogger(__name__)


def ensure_session_billing(db: Session, session: TherapySession) -> Optional[SessionBilling]:
    """
    Create the billing record for a completed session, once.

    Sessions without a service are not billed. The rate is the one captured at
    booking, falling back to the service's current base rate. The caller commits.
    """
    if session.billing is not None:
        return session.billing
    if session.service is None:
        logger.info(f"ℹ️ Session {session.id} has no service; no billing record created")
        return None

    rate = session.calculated_rate if session.calculated_rate is not None else session.service.base_rate
    client = session.client
    insured = bool(client and client.insurance_provider)
    billing = SessionBilling(
        practice_id=session.practice_id,
        session_id=session.id,
        service_code=session.service.service_code,
        units=1,
        rate_per_unit=rate,
        total_amount=rate,
        insurance_covered=insured,
        copay_amount=client.copay_amount if insured else None,
        billing_date=utcnow().date(),
        payment_status="pending",
    )
    db.add(billing)
    session.billing = billing
    logger.info(f"✅ Billing record created for session {session.id} ({billing.service_code}, {rate:.2f})")
    return billing


def billing_to_response(billing: SessionBilling, service_names: dict[str, str]) -> BillingRecordResponse:
    response = BillingRecordResponse.model_validate(billing)
    response.service_name = service_names.get(billing.service_code, billing.service_code)
    session = billing.session
    if session:
        response.client_name = session.client.full_name if session.client else None
        response.therapist_name = session.therapist.full_name if session.therapist else None
    return response


class BillingService:
    """Service layer for billing business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    # ------------------------------------------------------------------
    # Service catalog
    # ------------------------------------------------------------------

    def list_services(self, user: User, include_inactive: bool = False) -> list[Service]:
        return self.repo.get_services(self.db, user.practice_id, include_inactive)

    def get_service(self, service_id: int, user: User) -> Service:
        service = self.repo.get_service(self.db, service_id, user.practice_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        return service

    def create_service(self, data: ServiceCreate, user: User) -> Service:
        if self.repo.get_service_by_code(self.db, user.practice_id, data.service_code):
            raise HTTPException(status_code=409, detail=f"Service code {data.service_code} already exists")
        service = Service(practice_id=user.practice_id, **data.model_dump())
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        logger.info(f"✅ Created service {service.service_code} for practice {user.practice_id}")
        return service

    def update_service(self, service_id: int, data: ServiceUpdate, user: User) -> Service:
        service = self.get_service(service_id, user)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        new_code = updates.get("service_code")
        if new_code and new_code != service.service_code:
            if self.repo.get_service_by_code(self.db, user.practice_id, new_code):
                raise HTTPException(status_code=409, detail=f"Service code {new_code} already exists")
        for key, value in updates.items():
            setattr(service, key, value)
        self.db.commit()
        self.db.refresh(service)
        return service

    def deactivate_service(self, service_id: int, user: User) -> dict:
        service = self.get_service(service_id, user)
        service.is_active = False
        self.db.commit()
        logger.info(f"✅ Deactivated service {service.service_code}")
        return {"message": "Service deactivated"}

    # ------------------------------------------------------------------
    # Billing records
    # ------------------------------------------------------------------

    def get_billing(self, billing_id: int, user: User) -> SessionBilling:
        billing = self.repo.get_billing(self.db, billing_id, user.practice_id, viewer=user)
        if not billing:
            raise HTTPException(status_code=404, detail="Billing record not found")
        return billing

    def get_report(
        self,
        user: User,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        service_code: Optional[str] = None,
        therapist_id: Optional[int] = None,
        client_id: Optional[int] = None,
    ) -> BillingReportResponse:
        tz = user.practice.timezone
        try:
            start = local_date_to_utc_bounds(start_date, tz)[0] if start_date else None
            end = local_date_to_utc_bounds(end_date, tz)[1] if end_date else None
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        records = self.repo.get_billing_records(
            self.db,
            user.practice_id,
            status=status,
            start=start,
            end=end,
            service_code=service_code,
            therapist_id=therapist_id,
            client_id=client_id,
            viewer=user,
        )
        service_names = self.repo.get_service_names(self.db, user.practice_id)

        total_billed = sum(r.total_amount for r in records)
        total_paid = sum(r.payment_amount or 0.0 for r in records if r.payment_status == "paid" or r.payment_amount)
        outstanding = sum(
            max(r.total_amount - (r.payment_amount or 0.0), 0.0)
            for r in records
            if r.payment_status in ("pending", "billed")
        )
        summary = BillingSummary(
            total_billed=round(total_billed, 2),
            total_paid=round(total_paid, 2),
            total_outstanding=round(outstanding, 2),
            pending_count=sum(1 for r in records if r.payment_status == "pending"),
            paid_count=sum(1 for r in records if r.payment_status == "paid"),
        )
        return BillingReportResponse(
            records=[billing_to_response(r, service_names) for r in records],
            summary=summary,
        )

    def update_status(self, billing_id: int, status: str, user: User) -> BillingRecordResponse:
        try:
            validate_payment_status(status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        billing = self.get_billing(billing_id, user)
        billing.payment_status = status
        self.db.commit()
        self.db.refresh(billing)
        logger.info(f"✅ Billing {billing.id} status set to {status}")
        return billing_to_response(billing, self.repo.get_service_names(self.db, user.practice_id))

    def record_payment(self, billing_id: int, data: PaymentCreate, user: User) -> BillingRecordResponse:
        if data.payment_amount <= 0:
            raise HTTPException(status_code=400, detail="Payment amount must be greater than zero")
        billing = self.get_billing(billing_id, user)
        billing.payment_amount = data.payment_amount
        billing.payment_method = data.payment_method
        billing.payment_reference = data.payment_reference
        billing.payment_notes = data.payment_notes
        billing.payment_date = data.payment_date or utcnow().date()
        billing.payment_status = "paid" if data.payment_amount >= billing.total_amount else "billed"
        self.db.commit()
        self.db.refresh(billing)
        logger.info(f"💳 Payment recorded on billing {billing.id}: status {billing.payment_status}")
        return billing_to_response(billing, self.repo.get_service_names(self.db, user.practice_id))

    def generate_invoice_pdf(self, billing_id: int, user: User) -> bytes:
        billing = self.get_billing(billing_id, user)
        service_names = self.repo.get_service_names(self.db, user.practice_id)
        service_name = service_names.get(billing.service_code, billing.service_code)
        return InvoicePDFGenerator(billing, service_name, user.practice).generate()
