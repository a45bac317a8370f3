"""Billing repository - Database operations for services and session billing"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Client, TherapySession, User
from ...models_billing import Service, SessionBilling
from ..clients.repository import ClientRepository


class BillingRepository:
    """Repository for billing database operations"""

    # Services

    @staticmethod
    def get_services(db: Session, practice_id: int, include_inactive: bool = False) -> list[Service]:
        query = db.query(Service).filter(Service.practice_id == practice_id)
        if not include_inactive:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.service_code.asc()).all()

    @staticmethod
    def get_service(db: Session, service_id: int, practice_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.practice_id == practice_id).first()

    @staticmethod
    def get_service_by_code(db: Session, practice_id: int, service_code: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.practice_id == practice_id, Service.service_code == service_code)
            .first()
        )

    @staticmethod
    def get_service_names(db: Session, practice_id: int) -> dict[str, str]:
        """service_code -> service_name for the whole catalog, inactive services included"""
        rows = db.query(Service.service_code, Service.service_name).filter(Service.practice_id == practice_id).all()
        return {code: name for code, name in rows}

    # Session billing

    @staticmethod
    def get_billing(
        db: Session, billing_id: int, practice_id: int, viewer: Optional[User] = None
    ) -> Optional[SessionBilling]:
        query = (
            db.query(SessionBilling)
            .join(TherapySession, SessionBilling.session_id == TherapySession.id)
            .filter(SessionBilling.id == billing_id, SessionBilling.practice_id == practice_id)
        )
        if viewer is not None:
            query = ClientRepository.restrict_to_caseload(
                query, viewer, TherapySession.client_id, TherapySession.therapist_id
            )
        return query.first()

    @staticmethod
    def get_billing_records(
        db: Session,
        practice_id: int,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        service_code: Optional[str] = None,
        therapist_id: Optional[int] = None,
        client_id: Optional[int] = None,
        viewer: Optional[User] = None,
    ) -> list[SessionBilling]:
        query = (
            db.query(SessionBilling)
            .join(TherapySession, SessionBilling.session_id == TherapySession.id)
            .options(
                joinedload(SessionBilling.session).joinedload(TherapySession.client),
                joinedload(SessionBilling.session).joinedload(TherapySession.therapist),
            )
            .filter(SessionBilling.practice_id == practice_id)
        )
        if status:
            query = query.filter(SessionBilling.payment_status == status)
        if start is not None:
            query = query.filter(TherapySession.session_date >= start)
        if end is not None:
            query = query.filter(TherapySession.session_date < end)
        if service_code:
            query = query.filter(SessionBilling.service_code == service_code)
        if therapist_id:
            query = query.filter(TherapySession.therapist_id == therapist_id)
        if client_id:
            query = query.filter(TherapySession.client_id == client_id)
        if viewer is not None:
            query = ClientRepository.restrict_to_caseload(
                query, viewer, TherapySession.client_id, TherapySession.therapist_id
            )
        return query.order_by(TherapySession.session_date.desc()).all()

    @staticmethod
    def get_client_billing(db: Session, client: Client) -> list[SessionBilling]:
        return (
            db.query(SessionBilling)
            .join(TherapySession, SessionBilling.session_id == TherapySession.id)
            .filter(TherapySession.client_id == client.id, SessionBilling.practice_id == client.practice_id)
            .order_by(TherapySession.session_date.desc())
            .all()
        )
