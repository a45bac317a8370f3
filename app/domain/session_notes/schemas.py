"""Session note schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.schemas import CamelModel, UTCDateTime

Rating = Optional[int]


class SessionNoteFields(CamelModel):
    """Clinical fields shared by create, update and response"""

    session_focus: Optional[str] = None
    symptoms: Optional[str] = None
    short_term_goals: Optional[str] = None
    intervention: Optional[str] = None
    progress: Optional[str] = None
    remarks: Optional[str] = None
    recommendations: Optional[str] = None

    client_rating: Rating = Field(None, ge=0, le=10)
    therapist_rating: Rating = Field(None, ge=0, le=10)
    progress_toward_goals: Rating = Field(None, ge=0, le=10)
    mood_before: Rating = Field(None, ge=1, le=10)
    mood_after: Rating = Field(None, ge=1, le=10)

    risk_suicidal_ideation: Rating = Field(None, ge=0, le=4)
    risk_self_harm: Rating = Field(None, ge=0, le=4)
    risk_homicidal_ideation: Rating = Field(None, ge=0, le=4)
    risk_psychosis: Rating = Field(None, ge=0, le=4)
    risk_substance_use: Rating = Field(None, ge=0, le=4)
    risk_impulsivity: Rating = Field(None, ge=0, le=4)
    risk_aggression: Rating = Field(None, ge=0, le=4)
    risk_trauma_symptoms: Rating = Field(None, ge=0, le=4)
    risk_non_adherence: Rating = Field(None, ge=0, le=4)
    risk_support_system: Rating = Field(None, ge=0, le=4)


class SessionNoteCreate(SessionNoteFields):
    session_id: int
    client_id: int
    therapist_id: Optional[int] = None
    date: Optional[UTCDateTime] = None
    draft_content: Optional[str] = None
    ai_enabled: bool = False
    ai_template: Optional[str] = None
    custom_ai_prompt: Optional[str] = None


class SessionNoteUpdate(SessionNoteFields):
    date: Optional[UTCDateTime] = None
    draft_content: Optional[str] = None
    ai_template: Optional[str] = None
    custom_ai_prompt: Optional[str] = None


class DraftUpdate(CamelModel):
    draft_content: str


class SessionNoteResponse(SessionNoteFields):
    id: int
    session_id: int
    client_id: int
    therapist_id: int
    client_name: Optional[str] = None
    therapist_name: Optional[str] = None
    date: datetime
    generated_content: Optional[str] = None
    draft_content: Optional[str] = None
    final_content: Optional[str] = None
    is_draft: bool
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    finalized_by_id: Optional[int] = None
    ai_enabled: bool
    ai_template: Optional[str] = None
    custom_ai_prompt: Optional[str] = None
    ai_processing_status: str
    ai_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RegenerateRequest(CamelModel):
    custom_prompt: Optional[str] = None
    template: Optional[str] = None
