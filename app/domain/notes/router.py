"""Note router - FastAPI endpoints for general client notes"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import NoteCreate, NoteResponse, NoteUpdate
from .service import NoteService

router = APIRouter(prefix="/api", tags=["Notes"])


def get_note_service(db: Session = Depends(get_db)) -> NoteService:
    return NoteService(db)


@router.get("/clients/{client_id}/notes", response_model=list[NoteResponse])
async def list_client_notes(
    client_id: int,
    current_user: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    return service.list_client_notes(client_id, current_user)


@router.post("/notes", response_model=NoteResponse, status_code=201)
async def create_note(
    data: NoteCreate,
    current_user: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    return service.create_note(data, current_user)


@router.put("/notes/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    current_user: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    return service.update_note(note_id, data, current_user)


@router.delete("/notes/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    return service.delete_note(note_id, current_user)


__all__ = ["router", "list_client_notes", "create_note", "update_note", "delete_note"]
