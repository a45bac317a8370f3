"""Help guide schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ...shared.schemas import CamelModel
from ...shared.validators import validate_choice

HELP_CATEGORIES = [
    "dashboard",
    "clients",
    "scheduling",
    "notes",
    "library",
    "tasks",
    "billing",
    "settings",
    "assessments",
]


class HelpGuideCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    content: str = Field(..., min_length=1)
    category: str
    search_keywords: list[str] = []
    sort_order: int = 0

    @field_validator("category")
    @classmethod
    def check_category(cls, v):
        return validate_choice(v, HELP_CATEGORIES, "category")


class HelpGuideUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    search_keywords: Optional[list[str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, v):
        return validate_choice(v, HELP_CATEGORIES, "category")


class HelpGuideResponse(CamelModel):
    id: int
    practice_id: Optional[int] = None
    title: str
    slug: str
    content: str
    category: str
    search_keywords: Optional[list[str]] = None
    sort_order: Optional[int] = 0
    view_count: int
    helpful_count: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AskRequest(CamelModel):
    question: str = Field(..., min_length=1, max_length=500)


class AskResponse(CamelModel):
    answer: str
    guide: Optional[HelpGuideResponse] = None
    score: float = 0.0
