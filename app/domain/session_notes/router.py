"""
Session note router - FastAPI endpoints for clinical session notes
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import DraftUpdate, SessionNoteCreate, SessionNoteResponse, SessionNoteUpdate
from .service import SessionNoteService

router = APIRouter(prefix="/api", tags=["Session Notes"])


def get_session_note_service(db: Session = Depends(get_db)) -> SessionNoteService:
    """Dependency injection for SessionNoteService"""
    return SessionNoteService(db)


# ============================================
# Lookup
# ============================================


@router.get("/session-notes/{note_id}", response_model=SessionNoteResponse)
async def get_session_note(
    note_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.view_note(note_id, current_user, request)


@router.get("/sessions/{session_id}/notes", response_model=list[SessionNoteResponse])
async def list_session_notes(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.list_for_session(session_id, current_user)


@router.get("/clients/{client_id}/session-notes", response_model=list[SessionNoteResponse])
async def list_client_session_notes(
    client_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    """Every note returned is recorded as a session access in the audit log"""
    return service.list_for_client(client_id, current_user, request)


# ============================================
# Lifecycle
# ============================================


@router.post("/session-notes", response_model=SessionNoteResponse, status_code=201)
async def create_session_note(
    data: SessionNoteCreate,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    """
    Create a session note.

    With aiEnabled the draft is generated before the response returns; an AI
    failure is recorded on the note (aiProcessingStatus=error) rather than
    failing the request.
    """
    return service.create_note(data, current_user)


@router.put("/session-notes/{note_id}", response_model=SessionNoteResponse)
async def update_session_note(
    note_id: int,
    data: SessionNoteUpdate,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.update_note(note_id, data, current_user)


@router.patch("/session-notes/{note_id}/draft", response_model=SessionNoteResponse)
async def save_session_note_draft(
    note_id: int,
    data: DraftUpdate,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.save_draft(note_id, data.draft_content, current_user)


@router.post("/session-notes/{note_id}/finalize", response_model=SessionNoteResponse)
async def finalize_session_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.finalize_note(note_id, current_user)


@router.delete("/session-notes/{note_id}", response_model=MessageResponse)
async def delete_session_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return service.delete_note(note_id, current_user)


# ============================================
# Export
# ============================================


@router.get("/session-notes/{note_id}/pdf")
async def download_session_note_pdf(
    note_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    pdf_bytes, note = service.generate_pdf(note_id, current_user, request)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="session-note-{note.id}.pdf"'},
    )


__all__ = [
    "router",
    "get_session_note_service",
    "get_session_note",
    "list_session_notes",
    "list_client_session_notes",
    "create_session_note",
    "update_session_note",
    "save_session_note_draft",
    "finalize_session_note",
    "delete_session_note",
    "download_session_note_pdf",
]
