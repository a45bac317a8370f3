"""
Session note service

Lifecycle: created (optionally with an AI-generated draft) -> edited and
auto-saved -> finalized. A finalized note is locked against every write.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...models import TherapySession, User
from ...models_session_note import (
    CLINICAL_TEXT_FIELDS,
    SessionNote,
    compose_clinical_content,
)
from ...practice_time import utc_to_local_date_string, utcnow
from ...services.ai_service import AIService, AIServiceError, AIServiceUnavailable
from ...services.audit_logger import AuditLogger
from ...services.notification_service import NotificationService
from ...services.pdf_service import SessionNotePDFGenerator
from ..clients.repository import ClientRepository
from .schemas import SessionNoteCreate, SessionNoteResponse, SessionNoteUpdate

logger = logging.getLogger(__name__)

AI_NOT_CONFIGURED = "AI service not configured"


def note_to_response(note: SessionNote) -> SessionNoteResponse:
    response = SessionNoteResponse.model_validate(note)
    response.client_name = note.client.full_name if note.client else None
    response.therapist_name = note.therapist.full_name if note.therapist else None
    return response


def ai_note_data(note: SessionNote) -> dict:
    """Structured note fields handed to the model, including the client's name for the narrative"""
    data = {field: getattr(note, field) for field in CLINICAL_TEXT_FIELDS}
    data["mood_before"] = note.mood_before
    data["mood_after"] = note.mood_after
    data["client_name"] = note.client.full_name if note.client else None
    data["session_type"] = note.session.session_type if note.session else None
    tz = note.client.practice.timezone if note.client and note.client.practice else None
    data["session_date"] = utc_to_local_date_string(note.date, tz) if note.date else None
    return data


class SessionNoteService:
    def __init__(self, db: Session, ai: Optional[AIService] = None):
        self.db = db
        self.ai = ai or AIService()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_note(self, note_id: int, user: User) -> SessionNote:
        query = self.db.query(SessionNote).filter(SessionNote.id == note_id, SessionNote.practice_id == user.practice_id)
        note = ClientRepository.restrict_to_caseload(
            query, user, SessionNote.client_id, SessionNote.therapist_id
        ).first()
        if not note:
            raise HTTPException(status_code=404, detail="Session note not found")
        return note

    def view_note(self, note_id: int, user: User, request: Optional[Request] = None) -> SessionNoteResponse:
        note = self.get_note(note_id, user)
        AuditLogger(self.db, request).log_session_access(user, note.id, note.client_id)
        return note_to_response(note)

    def list_for_session(self, session_id: int, user: User) -> list[SessionNoteResponse]:
        session = self._get_session(session_id, user)
        notes = (
            self.db.query(SessionNote)
            .filter(SessionNote.session_id == session.id)
            .order_by(SessionNote.created_at.desc(), SessionNote.id.desc())
            .all()
        )
        return [note_to_response(n) for n in notes]

    def list_for_client(self, client_id: int, user: User, request: Optional[Request] = None) -> list[SessionNoteResponse]:
        client = ClientRepository.get_visible(self.db, client_id, user)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        notes = (
            self.db.query(SessionNote)
            .filter(SessionNote.client_id == client.id, SessionNote.practice_id == user.practice_id)
            .order_by(SessionNote.date.desc(), SessionNote.id.desc())
            .all()
        )
        audit = AuditLogger(self.db, request)
        for note in notes:
            audit.log_session_access(user, note.id, client.id)
        return [note_to_response(n) for n in notes]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_note(self, data: SessionNoteCreate, user: User) -> SessionNoteResponse:
        session = self._get_session(data.session_id, user)
        if session.client_id != data.client_id:
            raise HTTPException(status_code=400, detail="Session does not belong to this client")

        fields = data.model_dump(exclude_none=True, exclude={"session_id", "client_id", "therapist_id", "date"})
        note = SessionNote(
            practice_id=user.practice_id,
            session_id=session.id,
            client_id=session.client_id,
            therapist_id=data.therapist_id or session.therapist_id,
            date=data.date or session.session_date,
            is_draft=True,
            ai_processing_status="idle",
            **fields,
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"✅ Created session note {note.id} for session {session.id}")

        if note.ai_enabled:
            self._run_ai_generation(note, note.ai_template, note.custom_ai_prompt)
        return note_to_response(note)

    def update_note(self, note_id: int, data: SessionNoteUpdate, user: User) -> SessionNoteResponse:
        note = self._get_unlocked(note_id, user)
        for key, value in data.model_dump(exclude_unset=True).items():
            if key == "date" and value is None:
                continue
            setattr(note, key, value)
        self.db.commit()
        self.db.refresh(note)
        return note_to_response(note)

    def save_draft(self, note_id: int, draft_content: str, user: User) -> SessionNoteResponse:
        """Auto-save target; concurrent saves resolve last-write-wins"""
        note = self._get_unlocked(note_id, user)
        note.draft_content = draft_content
        note.is_draft = True
        self.db.commit()
        self.db.refresh(note)
        return note_to_response(note)

    def finalize_note(self, note_id: int, user: User) -> SessionNoteResponse:
        note = self._get_unlocked(note_id, user)
        final_content = note.draft_content or note.generated_content or compose_clinical_content(note)
        note.final_content = final_content
        note.is_finalized = True
        note.is_draft = False
        note.finalized_at = utcnow()
        note.finalized_by_id = user.id
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"🔒 Session note {note.id} finalized by user {user.id}")

        NotificationService(self.db).process_event(
            user.practice_id,
            "session_note_finalized",
            {
                "id": note.id,
                "clientId": note.client_id,
                "clientName": note.client.full_name if note.client else None,
                "therapistId": note.therapist_id,
                "therapistName": note.therapist.full_name if note.therapist else None,
            },
            "session_note",
            actor_id=user.id,
        )
        return note_to_response(note)

    def delete_note(self, note_id: int, user: User) -> dict:
        note = self._get_unlocked(note_id, user)
        self.db.delete(note)
        self.db.commit()
        return {"message": "Session note deleted"}

    # ------------------------------------------------------------------
    # AI
    # ------------------------------------------------------------------

    def regenerate_content(
        self, note_id: int, user: User, custom_prompt: Optional[str] = None, template: Optional[str] = None
    ) -> SessionNoteResponse:
        note = self._get_unlocked(note_id, user)
        if not self.ai.is_configured:
            raise HTTPException(status_code=503, detail=AI_NOT_CONFIGURED)
        if template:
            note.ai_template = template
        if custom_prompt is not None:
            note.custom_ai_prompt = custom_prompt
        note.ai_enabled = True
        self._run_ai_generation(note, note.ai_template, note.custom_ai_prompt)
        if note.ai_processing_status == "error":
            raise HTTPException(status_code=502, detail=note.ai_error or "AI content generation failed")
        return note_to_response(note)

    def _run_ai_generation(self, note: SessionNote, template: Optional[str], custom_prompt: Optional[str]) -> None:
        """Generate content inline; failures are recorded on the note, never raised"""
        if not self.ai.is_configured:
            note.ai_processing_status = "error"
            note.ai_error = AI_NOT_CONFIGURED
            self.db.commit()
            logger.warning(f"⚠️ AI requested for session note {note.id} but no API key is configured")
            return

        note.ai_processing_status = "processing"
        note.ai_error = None
        self.db.commit()

        try:
            content = self.ai.generate_session_note(ai_note_data(note), template, custom_prompt)
        except (AIServiceError, AIServiceUnavailable) as e:
            note.ai_processing_status = "error"
            note.ai_error = str(e)
            self.db.commit()
            logger.error(f"❌ AI generation failed for session note {note.id}: {e}")
            return

        note.generated_content = content
        note.draft_content = content
        note.ai_processing_status = "completed"
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"✅ AI content generated for session note {note.id}")

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def generate_pdf(self, note_id: int, user: User, request: Optional[Request] = None) -> tuple[bytes, SessionNote]:
        note = self.get_note(note_id, user)
        pdf_bytes = SessionNotePDFGenerator(note, user.practice).generate()
        AuditLogger(self.db, request).log_session_access(user, note.id, note.client_id, action="export_session_note_pdf")
        return pdf_bytes, note

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_session(self, session_id: int, user: User) -> TherapySession:
        query = self.db.query(TherapySession).filter(
            TherapySession.id == session_id, TherapySession.practice_id == user.practice_id
        )
        session = ClientRepository.restrict_to_caseload(
            query, user, TherapySession.client_id, TherapySession.therapist_id
        ).first()
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def _get_unlocked(self, note_id: int, user: User) -> SessionNote:
        note = self.get_note(note_id, user)
        if note.is_finalized:
            raise HTTPException(status_code=409, detail="Session note is finalized and can no longer be changed")
        return note


__all__ = ["SessionNoteService", "note_to_response", "ai_note_data"]
