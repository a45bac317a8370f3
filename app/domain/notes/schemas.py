"""Note domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.schemas import CamelModel


class NoteCreate(CamelModel):
    client_id: int
    title: Optional[str] = Field(None, max_length=255)
    content: str = Field(..., min_length=1)
    note_type: str = "general"
    is_private: bool = False


class NoteUpdate(CamelModel):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    note_type: Optional[str] = None
    is_private: Optional[bool] = None


class NoteResponse(CamelModel):
    id: int
    client_id: int
    author_id: int
    author_name: Optional[str] = None
    title: Optional[str] = None
    content: str
    note_type: str
    is_private: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
