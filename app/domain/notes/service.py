"""Note service - general client notes with private visibility"""

import logging

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Note, User
from ...utils.sanitization import strip_control_chars
from ..clients.repository import ClientRepository
from .schemas import NoteCreate, NoteResponse, NoteUpdate

logger = logging.getLogger(__name__)


def note_to_response(note: Note) -> NoteResponse:
    response = NoteResponse.model_validate(note)
    response.author_name = note.author.full_name if note.author else None
    return response


class NoteService:
    def __init__(self, db: Session):
        self.db = db

    def list_client_notes(self, client_id: int, user: User) -> list[NoteResponse]:
        """Private notes are only returned to their author"""
        if not ClientRepository.get_visible(self.db, client_id, user):
            raise HTTPException(status_code=404, detail="Client not found")
        notes = (
            self.db.query(Note)
            .filter(
                Note.client_id == client_id,
                Note.practice_id == user.practice_id,
                or_(Note.is_private.is_(False), Note.author_id == user.id),
            )
            .order_by(Note.created_at.desc(), Note.id.desc())
            .all()
        )
        return [note_to_response(n) for n in notes]

    def create_note(self, data: NoteCreate, user: User) -> NoteResponse:
        if not ClientRepository.get_visible(self.db, data.client_id, user):
            raise HTTPException(status_code=404, detail="Client not found")
        note = Note(
            practice_id=user.practice_id,
            client_id=data.client_id,
            author_id=user.id,
            title=strip_control_chars(data.title),
            content=strip_control_chars(data.content),
            note_type=data.note_type,
            is_private=data.is_private,
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"✅ Created note {note.id} for client {note.client_id}")
        return note_to_response(note)

    def update_note(self, note_id: int, data: NoteUpdate, user: User) -> NoteResponse:
        note = self._get_editable(note_id, user)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(note, key, strip_control_chars(value) if isinstance(value, str) else value)
        self.db.commit()
        self.db.refresh(note)
        return note_to_response(note)

    def delete_note(self, note_id: int, user: User) -> dict:
        note = self._get_editable(note_id, user)
        self.db.delete(note)
        self.db.commit()
        return {"message": "Note deleted"}

    def _get_editable(self, note_id: int, user: User) -> Note:
        query = self.db.query(Note).filter(Note.id == note_id, Note.practice_id == user.practice_id)
        note = ClientRepository.restrict_to_caseload(query, user, Note.client_id).first()
        if not note or (note.is_private and note.author_id != user.id):
            raise HTTPException(status_code=404, detail="Note not found")
        if note.author_id != user.id and user.role != "admin":
            raise HTTPException(status_code=403, detail="Only the author or an admin can change this note")
        return note
