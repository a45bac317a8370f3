"""Assessment domain schemas - templates, assignments, responses and reports"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ...models_assessment import QUESTION_TYPES, SECTION_ACCESS_LEVELS
from ...shared.schemas import CamelModel
from ...shared.validators import validate_choice

# ============================================
# Template tree - input
# ============================================


class OptionCreate(CamelModel):
    option_text: str = Field(..., min_length=1)
    option_value: Optional[float] = None
    sort_order: int = 0


class QuestionFields(CamelModel):
    is_required: bool = False
    sort_order: int = 0
    rating_min: Optional[int] = None
    rating_max: Optional[int] = None
    rating_labels: Optional[list[str]] = None
    contributes_to_score: bool = False

    @model_validator(mode="after")
    def check_rating_range(self):
        if self.rating_min is not None and self.rating_max is not None and self.rating_min > self.rating_max:
            raise ValueError("ratingMin must not be greater than ratingMax")
        return self


class QuestionCreate(QuestionFields):
    question_text: str = Field(..., min_length=1)
    question_type: str
    options: list[OptionCreate] = []

    @field_validator("question_type")
    @classmethod
    def check_question_type(cls, v):
        return validate_choice(v, QUESTION_TYPES, "question type")


class QuestionUpdate(CamelModel):
    question_text: Optional[str] = Field(None, min_length=1)
    question_type: Optional[str] = None
    is_required: Optional[bool] = None
    sort_order: Optional[int] = None
    rating_min: Optional[int] = None
    rating_max: Optional[int] = None
    rating_labels: Optional[list[str]] = None
    contributes_to_score: Optional[bool] = None
    options: Optional[list[OptionCreate]] = None

    @field_validator("question_type")
    @classmethod
    def check_question_type(cls, v):
        return validate_choice(v, QUESTION_TYPES, "question type") if v is not None else v


class SectionCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    access_level: str = "therapist_only"
    is_scoring: bool = False
    report_mapping: Optional[str] = None
    ai_report_prompt: Optional[str] = None
    sort_order: int = 0
    questions: list[QuestionCreate] = []

    @field_validator("access_level")
    @classmethod
    def check_access_level(cls, v):
        return validate_choice(v, SECTION_ACCESS_LEVELS, "access level")


class SectionUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    access_level: Optional[str] = None
    is_scoring: Optional[bool] = None
    report_mapping: Optional[str] = None
    ai_report_prompt: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("access_level")
    @classmethod
    def check_access_level(cls, v):
        return validate_choice(v, SECTION_ACCESS_LEVELS, "access level") if v is not None else v


class TemplateCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    is_standardized: bool = False
    version: str = "1.0"
    sections: list[SectionCreate] = []


class TemplateUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    is_standardized: Optional[bool] = None
    version: Optional[str] = None
    is_active: Optional[bool] = None


# ============================================
# Template tree - output
# ============================================


class OptionResponse(CamelModel):
    id: int
    option_text: str
    option_value: Optional[float] = None
    sort_order: int = 0


class QuestionResponse(CamelModel):
    id: int
    section_id: int
    question_text: str
    question_type: str
    is_required: bool
    sort_order: int = 0
    rating_min: Optional[int] = None
    rating_max: Optional[int] = None
    rating_labels: Optional[list[str]] = None
    contributes_to_score: bool
    options: list[OptionResponse] = []


class SectionResponse(CamelModel):
    id: int
    template_id: int
    title: str
    description: Optional[str] = None
    access_level: str
    is_scoring: bool
    report_mapping: Optional[str] = None
    ai_report_prompt: Optional[str] = None
    sort_order: int = 0
    questions: list[QuestionResponse] = []


class TemplateSummary(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_standardized: bool
    is_active: bool
    version: Optional[str] = None
    created_by_id: int
    section_count: int = 0
    question_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateDetail(TemplateSummary):
    sections: list[SectionResponse] = []


# ============================================
# Assignments
# ============================================


class AssignmentCreate(CamelModel):
    template_id: int
    client_id: int
    due_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentUpdate(CamelModel):
    status: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentResponse(CamelModel):
    id: int
    template_id: int
    template_name: Optional[str] = None
    client_id: int
    client_name: Optional[str] = None
    assigned_by_id: int
    assigned_by_name: Optional[str] = None
    status: str
    due_date: Optional[date] = None
    notes: Optional[str] = None
    client_submitted_at: Optional[datetime] = None
    therapist_completed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_score: Optional[float] = None
    response_count: int = 0
    has_report: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AnswerResponse(CamelModel):
    id: int
    assignment_id: int
    question_id: int
    responder_id: int
    responder_type: str
    response_text: Optional[str] = None
    selected_options: Optional[list[int]] = None
    rating_value: Optional[int] = None
    score_value: Optional[float] = None
    updated_at: Optional[datetime] = None


class AssignmentDetail(AssignmentResponse):
    template: Optional[TemplateDetail] = None
    responses: list[AnswerResponse] = []


# ============================================
# Responses
# ============================================


class ResponseItem(CamelModel):
    question_id: int
    response_text: Optional[str] = None
    selected_options: Optional[list[int]] = None
    rating_value: Optional[int] = None


class ResponseSave(ResponseItem):
    assignment_id: int


class BatchResponseSave(CamelModel):
    assignment_id: int
    responses: list[ResponseItem]


class BatchSaveResult(CamelModel):
    saved: int
    skipped: int


class ResponseSaveResult(BatchSaveResult):
    response: Optional[AnswerResponse] = None


# ============================================
# Summary
# ============================================


class SummaryQuestion(CamelModel):
    question_id: int
    question_text: str
    question_type: str
    primary_text: str
    secondary_text: Optional[str] = None
    missing_option_ids: Optional[list[int]] = None
    score_value: Optional[float] = None


class SummarySection(CamelModel):
    section_id: int
    title: str
    access_level: str
    is_scoring: bool
    questions: list[SummaryQuestion] = []


class SectionScore(CamelModel):
    section_id: int
    title: str
    score: float


class AssessmentSummary(CamelModel):
    assignment_id: int
    template_name: Optional[str] = None
    client_name: Optional[str] = None
    status: str
    total_score: Optional[float] = None
    section_scores: list[SectionScore] = []
    sections: list[SummarySection] = []


# ============================================
# Reports
# ============================================


class ReportResponse(CamelModel):
    id: int
    assignment_id: int
    generated_content: Optional[str] = None
    draft_content: Optional[str] = None
    final_content: Optional[str] = None
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    generated_at: Optional[datetime] = None
    created_by_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReportDraftUpdate(CamelModel):
    draft_content: str
