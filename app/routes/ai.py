import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.clients.repository import ClientRepository
from ..domain.session_notes.router import get_session_note_service
from ..domain.session_notes.schemas import RegenerateRequest, SessionNoteResponse
from ..domain.session_notes.service import SessionNoteService, ai_note_data
from ..models import User
from ..models_session_note import SessionNote
from ..services.ai_service import AIService, get_templates
from ..services.audit_logger import AuditLogger
from ..shared.schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])


class AIStatusResponse(CamelModel):
    configured: bool
    model: str


class AITemplateResponse(CamelModel):
    id: str
    name: str
    description: str
    fields: list[str]


class GenerateFromTemplateRequest(CamelModel):
    template_id: str
    session_data: dict[str, Any] = {}
    field: Optional[str] = None


class ClinicalReportRequest(CamelModel):
    client_id: int


class GeneratedContentResponse(CamelModel):
    content: str
    note_count: Optional[int] = None


def get_ai_service() -> AIService:
    """Dependency injection for AIService"""
    return AIService()


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _require_configured(ai: AIService) -> None:
    if not ai.is_configured:
        raise HTTPException(status_code=503, detail="AI service not configured")


@router.get("/status", response_model=AIStatusResponse)
async def ai_status(
    current_user: User = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    return {"configured": ai.is_configured, "model": ai.model}


@router.get("/templates", response_model=list[AITemplateResponse])
async def ai_templates(current_user: User = Depends(get_current_user)):
    return get_templates()


@router.post("/generate-from-template", response_model=GeneratedContentResponse)
async def generate_from_template(
    data: GenerateFromTemplateRequest,
    current_user: User = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    """Session data arrives with the browser's camelCase keys"""
    _require_configured(ai)
    session_data = {_snake_case(key): value for key, value in (data.session_data or {}).items()}
    try:
        content = ai.generate_from_template(data.template_id, session_data, data.field)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info(f"🤖 Template '{data.template_id}' content generated for user {current_user.id}")
    return {"content": content}


@router.post("/generate-clinical-report", response_model=GeneratedContentResponse)
async def generate_clinical_report(
    data: ClinicalReportRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai_service),
):
    """Longitudinal summary of a client's finalized session notes"""
    client = ClientRepository.get_visible(db, data.client_id, current_user)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    notes = (
        db.query(SessionNote)
        .filter(SessionNote.client_id == client.id, SessionNote.is_finalized.is_(True))
        .order_by(SessionNote.date.asc())
        .all()
    )
    if not notes:
        raise HTTPException(status_code=400, detail="No finalized session notes found for this client")
    _require_configured(ai)

    note_data = []
    for note in notes:
        item = ai_note_data(note)
        item["content"] = note.final_content
        note_data.append(item)
    content = ai.generate_clinical_report(client.full_name, note_data)

    AuditLogger(db, request).log_client_access(
        current_user, client.id, action="generate_clinical_report", details={"noteCount": len(notes)}
    )
    return {"content": content, "note_count": len(notes)}


@router.post("/regenerate-content/{note_id}", response_model=SessionNoteResponse)
async def regenerate_content(
    note_id: int,
    data: Optional[RegenerateRequest] = None,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    data = data or RegenerateRequest()
    return service.regenerate_content(note_id, current_user, data.custom_prompt, data.template)
