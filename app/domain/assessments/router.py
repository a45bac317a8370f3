"""
Assessment router - FastAPI endpoints for templates, assignments, responses and reports
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import MessageResponse
from .schemas import (
    AnswerResponse,
    AssessmentSummary,
    AssignmentCreate,
    AssignmentDetail,
    AssignmentResponse,
    AssignmentUpdate,
    BatchResponseSave,
    BatchSaveResult,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    ReportDraftUpdate,
    ReportResponse,
    ResponseSave,
    ResponseSaveResult,
    SectionCreate,
    SectionResponse,
    SectionUpdate,
    TemplateCreate,
    TemplateDetail,
    TemplateSummary,
    TemplateUpdate,
)
from .service import AssessmentService

router = APIRouter(prefix="/api", tags=["Assessments"])


def get_assessment_service(db: Session = Depends(get_db)) -> AssessmentService:
    """Dependency injection for AssessmentService"""
    return AssessmentService(db)


# ============================================
# Templates
# ============================================


@router.get("/assessments/templates", response_model=list[TemplateSummary])
async def list_templates(
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.list_templates(current_user, include_inactive)


@router.post("/assessments/templates", response_model=TemplateDetail, status_code=201)
async def create_template(
    data: TemplateCreate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Create a template with its nested sections, questions and options"""
    return service.create_template(data, current_user)


@router.get("/assessments/templates/{template_id}", response_model=TemplateDetail)
async def get_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.get_template_detail(template_id, current_user)


@router.put("/assessments/templates/{template_id}", response_model=TemplateDetail)
async def update_template(
    template_id: int,
    data: TemplateUpdate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.update_template(template_id, data, current_user)


@router.delete("/assessments/templates/{template_id}", response_model=MessageResponse)
async def delete_template(
    template_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.delete_template(template_id, current_user)


@router.post("/assessments/templates/{template_id}/sections", response_model=SectionResponse, status_code=201)
async def add_section(
    template_id: int,
    data: SectionCreate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.add_section(template_id, data, current_user)


@router.put("/assessments/sections/{section_id}", response_model=SectionResponse)
async def update_section(
    section_id: int,
    data: SectionUpdate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.update_section(section_id, data, current_user)


@router.delete("/assessments/sections/{section_id}", response_model=MessageResponse)
async def delete_section(
    section_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.delete_section(section_id, current_user)


@router.post("/assessments/sections/{section_id}/questions", response_model=QuestionResponse, status_code=201)
async def add_question(
    section_id: int,
    data: QuestionCreate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.add_question(section_id, data, current_user)


@router.put("/assessments/questions/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: int,
    data: QuestionUpdate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.update_question(question_id, data, current_user)


@router.delete("/assessments/questions/{question_id}", response_model=MessageResponse)
async def delete_question(
    question_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.delete_question(question_id, current_user)


# ============================================
# Assignments
# ============================================


@router.post("/assessments/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.create_assignment(data, current_user)


@router.get("/assessments/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    status: Optional[str] = Query(None),
    client_id: Optional[int] = Query(None, alias="clientId"),
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.list_assignments(current_user, status, client_id)


@router.get("/clients/{client_id}/assessments", response_model=list[AssignmentResponse])
async def list_client_assignments(
    client_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.list_client_assignments(client_id, current_user)


@router.get("/assessments/assignments/{assignment_id}", response_model=AssignmentDetail)
async def get_assignment(
    assignment_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.get_assignment_detail(assignment_id, current_user, request)


@router.patch("/assessments/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    data: AssignmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Setting status to completed runs the full completion (scoring and notification)"""
    return service.update_assignment(assignment_id, data, current_user)


@router.delete("/assessments/assignments/{assignment_id}", response_model=MessageResponse)
async def delete_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.delete_assignment(assignment_id, current_user)


# ============================================
# Responses
# ============================================


@router.get("/assessments/assignments/{assignment_id}/responses", response_model=list[AnswerResponse])
async def list_responses(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.list_responses(assignment_id, current_user)


@router.post("/assessments/responses", response_model=ResponseSaveResult)
async def save_response(
    data: ResponseSave,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.save_response(data.assignment_id, data, current_user)


@router.post("/assessments/responses/batch", response_model=BatchSaveResult)
async def save_responses_batch(
    data: BatchResponseSave,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Upsert many answers in one transaction; empty answers are counted as skipped"""
    return service.save_responses_batch(data.assignment_id, data.responses, current_user)


@router.post("/assessments/assignments/{assignment_id}/complete", response_model=AssignmentResponse)
async def complete_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.complete_assignment(assignment_id, current_user)


@router.get("/assessments/assignments/{assignment_id}/summary", response_model=AssessmentSummary)
async def get_summary(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.get_summary(assignment_id, current_user)


# ============================================
# Reports
# ============================================


@router.post("/assessments/assignments/{assignment_id}/generate-report", response_model=ReportResponse)
async def generate_report(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.generate_report(assignment_id, current_user)


@router.get("/assessments/assignments/{assignment_id}/report", response_model=ReportResponse)
async def get_report(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.get_report(assignment_id, current_user)


@router.put("/assessments/assignments/{assignment_id}/report", response_model=ReportResponse)
async def save_report_draft(
    assignment_id: int,
    data: ReportDraftUpdate,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.save_report_draft(assignment_id, data.draft_content, current_user)


@router.post("/assessments/assignments/{assignment_id}/report/finalize", response_model=ReportResponse)
async def finalize_report(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.finalize_report(assignment_id, current_user)


@router.post("/assessments/assignments/{assignment_id}/report/unfinalize", response_model=ReportResponse)
async def unfinalize_report(
    assignment_id: int,
    current_user: User = Depends(require_roles("admin", "supervisor")),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.unfinalize_report(assignment_id, current_user)


@router.get("/assessments/assignments/{assignment_id}/report/pdf")
async def download_report_pdf(
    assignment_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    pdf_bytes = service.generate_report_pdf(assignment_id, current_user, request)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="assessment-report-{assignment_id}.pdf"'},
    )


__all__ = [
    "router",
    "get_assessment_service",
    "list_templates",
    "create_template",
    "get_template",
    "update_template",
    "delete_template",
    "add_section",
    "update_section",
    "delete_section",
    "add_question",
    "update_question",
    "delete_question",
    "create_assignment",
    "list_assignments",
    "list_client_assignments",
    "get_assignment",
    "update_assignment",
    "delete_assignment",
    "list_responses",
    "save_response",
    "save_responses_batch",
    "complete_assignment",
    "get_summary",
    "generate_report",
    "get_report",
    "save_report_draft",
    "finalize_report",
    "unfinalize_report",
    "download_report_pdf",
]
