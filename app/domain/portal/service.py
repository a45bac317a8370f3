"""
Client portal service

Every operation is scoped to the signed-in client. Staff-only data
(therapist_only assessment sections, unshared documents) never leaves here.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...config import PASSWORD_RESET_MAX_AGE, PORTAL_ACTIVATION_MAX_AGE
from ...models import Client, Document, TherapySession
from ...models_assessment import CLIENT_ACCESS_LEVELS, AssessmentAssignment
from ...practice_time import (
    iter_local_dates,
    local_date_to_utc_bounds,
    local_time_to_utc,
    parse_local_date,
    utcnow,
)
from ...security_utils import (
    PORTAL_ACTIVATION_SALT,
    PORTAL_RESET_SALT,
    check_password_strength,
    generate_timed_token,
    hash_password,
    verify_password,
    verify_timed_token,
)
from ...services.audit_logger import AuditLogger
from ...services.notification_service import NotificationService
from ..assessments.schemas import AnswerResponse, AssignmentDetail, ResponseItem
from ..assessments.service import (
    assignment_event_data,
    assignment_to_response,
    save_responses,
    template_to_detail,
)
from ..billing.repository import BillingRepository
from ..billing.service import billing_to_response
from ..documents.service import document_to_response, load_document_bytes, store_client_document
from ..scheduling.repository import SchedulingRepository
from ..scheduling.service import DEFAULT_SESSION_MINUTES, SchedulingService, sessions_overlap
from .schemas import BookAppointmentRequest, PortalClientResponse, PortalSession

logger = logging.getLogger(__name__)

MAX_SLOT_RANGE_DAYS = 31
CLIENT_UPLOAD_CATEGORY = "client_upload"
SUBMITTED_STATUSES = ("waiting_for_therapist", "therapist_completed", "completed")


def portal_client_to_response(client: Client) -> PortalClientResponse:
    response = PortalClientResponse.model_validate(client)
    response.therapist_name = client.assigned_therapist.full_name if client.assigned_therapist else None
    response.practice_name = client.practice.name if client.practice else None
    return response


def portal_session_to_response(session: TherapySession) -> PortalSession:
    response = PortalSession.model_validate(session)
    response.therapist_name = session.therapist.full_name if session.therapist else None
    response.service_name = session.service.service_name if session.service else None
    response.room_name = session.room.room_name if session.room else None
    return response


def _check_password(password: str) -> None:
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )


class PortalAuthService:
    def __init__(self, db: Session, request: Optional[Request] = None):
        self.db = db
        self.request = request

    def activate(self, token: str, password: str) -> Client:
        data = verify_timed_token(token, PORTAL_ACTIVATION_SALT, max_age=PORTAL_ACTIVATION_MAX_AGE)
        if not data:
            raise HTTPException(status_code=400, detail="Invalid or expired activation link")

        client = self.db.query(Client).filter(Client.id == data.get("client_id")).first()
        if not client or not client.has_portal_access:
            raise HTTPException(status_code=400, detail="Invalid or expired activation link")
        _check_password(password)

        client.portal_email = data.get("email") or client.portal_email
        client.portal_password_hash = hash_password(password)
        client.portal_activated_at = utcnow()
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"🔓 Portal account activated for client {client.id}")
        return client

    def login(self, email: str, password: str) -> Client:
        """
        Authenticate a portal client.

        Raises:
            401 bad credentials, 403 portal access revoked or never activated
        """
        email = email.strip().lower()
        audit = AuditLogger(self.db, self.request)
        candidates = self.db.query(Client).filter(func.lower(Client.portal_email) == email).all()

        client = next((c for c in candidates if verify_password(password, c.portal_password_hash)), None)
        if client is None:
            if candidates and all(c.portal_activated_at is None for c in candidates):
                audit.record_login_attempt(email, False, "not_activated", portal=True)
                raise HTTPException(status_code=403, detail="Portal account has not been activated")
            audit.record_login_attempt(email, False, "invalid_credentials", portal=True)
            logger.warning(f"⚠️ Failed portal login for {email}")
            raise HTTPException(status_code=401, detail="Invalid email or password")

        if not client.has_portal_access:
            audit.record_login_attempt(email, False, "portal_access_revoked", portal=True)
            raise HTTPException(status_code=403, detail="Portal access is not enabled for this account")

        client.portal_last_login = utcnow()
        self.db.commit()
        audit.record_login_attempt(email, True, portal=True)
        audit.log_action(
            "portal_login",
            username=email,
            resource_type="auth",
            client_id=client.id,
            practice_id=client.practice_id,
        )
        logger.info(f"🔓 Portal login for client {client.id}")
        return client

    def forgot_password(self, email: str) -> dict:
        email = email.strip().lower()
        client = (
            self.db.query(Client)
            .filter(
                func.lower(Client.portal_email) == email,
                Client.has_portal_access.is_(True),
                Client.portal_activated_at.isnot(None),
            )
            .first()
        )
        if client:
            token = generate_timed_token({"client_id": client.id}, PORTAL_RESET_SALT)
            from ...email_service import send_password_reset_email

            try:
                send_password_reset_email(client.portal_email, token, portal=True)
                logger.info(f"✅ Portal password reset email sent for client {client.id}")
            except Exception as e:
                logger.error(f"❌ Portal password reset email failed for client {client.id}: {e}")
        return {"message": "If an account exists for that email, a reset link has been sent"}

    def reset_password(self, token: str, password: str) -> dict:
        data = verify_timed_token(token, PORTAL_RESET_SALT, max_age=PASSWORD_RESET_MAX_AGE)
        if not data:
            raise HTTPException(status_code=400, detail="Invalid or expired reset link")
        client = self.db.query(Client).filter(Client.id == data.get("client_id")).first()
        if not client:
            raise HTTPException(status_code=400, detail="Invalid or expired reset link")
        _check_password(password)

        client.portal_password_hash = hash_password(password)
        self.db.commit()
        logger.info(f"🔒 Portal password reset for client {client.id}")
        return {"message": "Password has been reset"}


class PortalService:
    def __init__(self, db: Session, client: Client):
        self.db = db
        self.client = client

    @property
    def tz(self) -> Optional[str]:
        return self.client.practice.timezone if self.client.practice else None

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    def list_appointments(self) -> dict:
        sessions = (
            self.db.query(TherapySession)
            .filter(TherapySession.client_id == self.client.id)
            .order_by(TherapySession.session_date.asc())
            .all()
        )
        now = utcnow()
        upcoming = [s for s in sessions if s.status == "scheduled" and s.session_date >= now]
        past = [s for s in reversed(sessions) if s not in upcoming]
        return {
            "upcoming": [portal_session_to_response(s) for s in upcoming],
            "past": [portal_session_to_response(s) for s in past],
        }

    def list_services(self) -> list:
        services = BillingRepository.get_services(self.db, self.client.practice_id)
        return [s for s in services if s.therapist_visible]

    def available_slots(
        self,
        start_date: str,
        end_date: str,
        session_type: Optional[str] = None,
        service_id: Optional[int] = None,
    ) -> dict[str, list[dict]]:
        """
        Open slots per local date for the client's therapist.

        Slots step through business hours at the practice slot length. A slot
        is open when it is in the future and the session it would hold does not
        overlap any of the therapist's non-cancelled sessions.
        """
        therapist_id = self.client.assigned_therapist_id
        if not therapist_id:
            raise HTTPException(status_code=400, detail="No therapist is assigned to your account")

        try:
            days = (parse_local_date(end_date) - parse_local_date(start_date)).days
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")
        if days < 0:
            raise HTTPException(status_code=400, detail="endDate must not be before startDate")
        if days >= MAX_SLOT_RANGE_DAYS:
            raise HTTPException(status_code=400, detail=f"Date range cannot exceed {MAX_SLOT_RANGE_DAYS} days")

        practice = self.client.practice
        step = practice.slot_minutes or 60
        duration = self._slot_duration(service_id, step)
        window_start = local_date_to_utc_bounds(start_date, self.tz)[0]
        window_end = local_date_to_utc_bounds(end_date, self.tz)[1]
        busy = SchedulingRepository.get_overlap_candidates(
            self.db,
            self.client.practice_id,
            window_start,
            window_end + timedelta(minutes=duration),
            therapist_id=therapist_id,
        )

        now = utcnow()
        open_minute = practice.business_hours_start * 60
        close_minute = practice.business_hours_end * 60
        slots: dict[str, list[dict]] = {}
        for date_str in iter_local_dates(start_date, end_date):
            day = []
            minute = open_minute
            while minute + duration <= close_minute:
                time_str = f"{minute // 60:02d}:{minute % 60:02d}"
                start = local_time_to_utc(date_str, time_str, self.tz)
                if start > now and not any(
                    sessions_overlap(start, duration, s.session_date, s.duration) for s in busy
                ):
                    day.append({"time": time_str, "session_date": start})
                minute += step
            slots[date_str] = day
        logger.info(
            f"📋 {sum(len(v) for v in slots.values())} open slots for client {self.client.id} "
            f"({start_date}..{end_date}, {session_type or 'any'})"
        )
        return slots

    def book_appointment(self, data: BookAppointmentRequest) -> PortalSession:
        therapist_id = self.client.assigned_therapist_id
        if not therapist_id:
            raise HTTPException(status_code=400, detail="No therapist is assigned to your account")
        if data.session_date <= utcnow():
            raise HTTPException(status_code=400, detail="Appointments must be booked in the future")
        if data.service_id is not None and data.service_id not in {s.id for s in self.list_services()}:
            raise HTTPException(status_code=400, detail="Service not available for online booking")

        session = SchedulingService(self.db).book_session(
            self.client,
            therapist_id,
            data.session_date,
            data.session_type,
            service_id=data.service_id,
            notes=data.notes,
            booked_via_portal=True,
        )
        logger.info(f"📅 Client {self.client.id} booked session {session.id} through the portal")
        return portal_session_to_response(session)

    def _slot_duration(self, service_id: Optional[int], default: int) -> int:
        if service_id is None:
            return default or DEFAULT_SESSION_MINUTES
        service = next((s for s in self.list_services() if s.id == service_id), None)
        if service is None:
            raise HTTPException(status_code=400, detail="Service not available for online booking")
        return service.duration

    # ------------------------------------------------------------------
    # Documents and invoices
    # ------------------------------------------------------------------

    def list_documents(self) -> list:
        documents = (
            self.db.query(Document)
            .filter(Document.client_id == self.client.id, Document.is_shared_in_portal.is_(True))
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )
        return [document_to_response(d) for d in documents]

    def download_document(self, document_id: int, request: Optional[Request] = None) -> tuple[Document, bytes]:
        document = (
            self.db.query(Document)
            .filter(
                Document.id == document_id,
                Document.client_id == self.client.id,
                Document.is_shared_in_portal.is_(True),
            )
            .first()
        )
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")

        data = load_document_bytes(document)
        document.download_count = (document.download_count or 0) + 1
        self.db.commit()
        AuditLogger(self.db, request).log_document_access(
            None,
            document.id,
            self.client.id,
            "portal_download_document",
            username=self.client.portal_email,
            practice_id=self.client.practice_id,
        )
        return document, data

    def upload_document(self, filename: Optional[str], content_type: Optional[str], contents: bytes):
        document = store_client_document(
            self.db,
            self.client,
            filename or "upload",
            content_type,
            contents,
            category=CLIENT_UPLOAD_CATEGORY,
            is_shared_in_portal=True,
            uploaded_by_client=True,
        )
        NotificationService(self.db).process_event(
            self.client.practice_id,
            "document_uploaded",
            {
                "id": document.id,
                "clientId": self.client.id,
                "clientName": self.client.full_name,
                "therapistId": self.client.assigned_therapist_id,
                "fileName": document.original_name,
            },
            "document",
        )
        return document_to_response(document)

    def list_invoices(self) -> list:
        service_names = BillingRepository.get_service_names(self.db, self.client.practice_id)
        return [billing_to_response(b, service_names) for b in BillingRepository.get_client_billing(self.db, self.client)]

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    def list_assignments(self) -> list[AssignmentDetail]:
        assignments = (
            self.db.query(AssessmentAssignment)
            .filter(AssessmentAssignment.client_id == self.client.id)
            .order_by(AssessmentAssignment.created_at.desc(), AssessmentAssignment.id.desc())
            .all()
        )
        return [self._to_detail(a) for a in assignments if self._client_question_ids(a)]

    def get_assignment(self, assignment_id: int) -> AssignmentDetail:
        return self._to_detail(self._get_assignment(assignment_id))

    def save_responses(self, assignment_id: int, items: list[ResponseItem]) -> dict:
        assignment = self._get_assignment(assignment_id)
        if assignment.status in SUBMITTED_STATUSES:
            raise HTTPException(status_code=409, detail="This form has already been submitted")

        client_questions = self._client_question_ids(assignment)
        all_questions = {q.id for s in assignment.template.sections for q in s.questions}
        blocked = [i.question_id for i in items if i.question_id in all_questions and i.question_id not in client_questions]
        if blocked:
            logger.warning(f"🚫 Client {self.client.id} tried to answer staff-only questions {blocked}")
            raise HTTPException(status_code=403, detail="Some questions are not available to you")

        saved, skipped, _ = save_responses(
            self.db, assignment, items, self.client.id, "client", access_levels=CLIENT_ACCESS_LEVELS
        )
        self.db.commit()
        logger.info(f"📥 Portal assignment {assignment.id}: saved {saved} responses, skipped {skipped}")
        return {"saved": saved, "skipped": skipped}

    def submit_assignment(self, assignment_id: int) -> AssessmentAssignment:
        assignment = self._get_assignment(assignment_id)
        if assignment.status in SUBMITTED_STATUSES:
            raise HTTPException(status_code=409, detail="This form has already been submitted")

        assignment.status = "waiting_for_therapist"
        assignment.client_submitted_at = utcnow()
        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"✅ Client {self.client.id} submitted assignment {assignment.id}")

        NotificationService(self.db).process_event(
            self.client.practice_id,
            "assessment_submitted",
            assignment_event_data(assignment),
            "assessment_assignment",
        )
        return assignment

    def _get_assignment(self, assignment_id: int) -> AssessmentAssignment:
        assignment = (
            self.db.query(AssessmentAssignment)
            .filter(AssessmentAssignment.id == assignment_id, AssessmentAssignment.client_id == self.client.id)
            .first()
        )
        if not assignment or not self._client_question_ids(assignment):
            raise HTTPException(status_code=404, detail="Form not found")
        return assignment

    @staticmethod
    def _client_question_ids(assignment: AssessmentAssignment) -> set[int]:
        return {
            q.id
            for s in assignment.template.sections
            if s.access_level in CLIENT_ACCESS_LEVELS
            for q in s.questions
        }

    def _to_detail(self, assignment: AssessmentAssignment) -> AssignmentDetail:
        visible = self._client_question_ids(assignment)
        detail = AssignmentDetail(**assignment_to_response(assignment).model_dump())
        detail.template = template_to_detail(assignment.template, access_levels=CLIENT_ACCESS_LEVELS)
        detail.responses = [AnswerResponse.model_validate(r) for r in assignment.responses if r.question_id in visible]
        detail.response_count = len(detail.responses)
        # scores come from staff-only scoring sections
        detail.total_score = None
        return detail
