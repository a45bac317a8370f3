"""
Assessment service

Templates are trees (template -> sections -> questions -> options). An
assignment hands a template to a client; responses are upserted per
question by staff or, through the portal, by the client; completion scores
the assignment and an AI report can be drafted and finalized from it.
"""

import logging
from typing import Iterable, Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...models import Client, User
from ...models_assessment import (
    ASSIGNMENT_STATUSES,
    AssessmentAssignment,
    AssessmentQuestion,
    AssessmentQuestionOption,
    AssessmentReport,
    AssessmentResponse,
    AssessmentSection,
    AssessmentTemplate,
)
from ...practice_time import utcnow
from ...services.ai_service import AIService
from ...services.assessment_formatting import format_assignment_text, format_response
from ...services.assessment_scoring import calculate_scores, score_response
from ...services.audit_logger import AuditLogger
from ...services.notification_service import NotificationService
from ...services.pdf_service import AssessmentReportPDFGenerator
from ..clients.repository import ClientRepository
from .repository import AssessmentRepository
from .schemas import (
    AnswerResponse,
    AssessmentSummary,
    AssignmentCreate,
    AssignmentDetail,
    AssignmentResponse,
    AssignmentUpdate,
    OptionCreate,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    ReportResponse,
    ResponseItem,
    SectionCreate,
    SectionResponse,
    SectionUpdate,
    TemplateCreate,
    TemplateDetail,
    TemplateSummary,
    TemplateUpdate,
)

logger = logging.getLogger(__name__)


# ============================================
# Converters
# ============================================


def _visible_sections(template: AssessmentTemplate, access_levels: Optional[Iterable[str]] = None):
    sections = list(template.sections or [])
    if access_levels is None:
        return sections
    allowed = set(access_levels)
    return [s for s in sections if s.access_level in allowed]


def template_to_summary(template: AssessmentTemplate) -> TemplateSummary:
    summary = TemplateSummary.model_validate(template)
    summary.section_count = len(template.sections)
    summary.question_count = sum(len(s.questions) for s in template.sections)
    return summary


def template_to_detail(template: AssessmentTemplate, access_levels: Optional[Iterable[str]] = None) -> TemplateDetail:
    """Full tree; with access_levels only those sections are included"""
    sections = _visible_sections(template, access_levels)
    detail = TemplateDetail.model_validate(template)
    detail.sections = [SectionResponse.model_validate(s) for s in sections]
    detail.section_count = len(sections)
    detail.question_count = sum(len(s.questions) for s in sections)
    return detail


def assignment_to_response(assignment: AssessmentAssignment) -> AssignmentResponse:
    response = AssignmentResponse.model_validate(assignment)
    response.template_name = assignment.template.name if assignment.template else None
    response.client_name = assignment.client.full_name if assignment.client else None
    response.assigned_by_name = assignment.assigned_by.full_name if assignment.assigned_by else None
    response.response_count = len(assignment.responses)
    response.has_report = assignment.report is not None
    return response


def assignment_event_data(assignment: AssessmentAssignment) -> dict:
    client = assignment.client
    return {
        "id": assignment.id,
        "clientId": assignment.client_id,
        "clientName": client.full_name if client else None,
        "therapistId": client.assigned_therapist_id if client else None,
        "templateName": assignment.template.name if assignment.template else None,
        "totalScore": assignment.total_score,
    }


def build_summary(assignment: AssessmentAssignment, access_levels: Optional[Iterable[str]] = None) -> AssessmentSummary:
    """Sections with formatted answers, plus total and per-section scores"""
    responses = {r.question_id: r for r in assignment.responses}
    sections = []
    for section in _visible_sections(assignment.template, access_levels):
        questions = []
        for question in section.questions:
            response = responses.get(question.id)
            formatted = format_response(question, response)
            questions.append(
                {
                    "question_id": question.id,
                    "question_text": question.question_text,
                    "question_type": question.question_type,
                    "primary_text": formatted["primaryText"],
                    "secondary_text": formatted.get("secondaryText"),
                    "missing_option_ids": formatted.get("missingOptionIds"),
                    "score_value": score_response(question, response) if response else None,
                }
            )
        sections.append(
            {
                "section_id": section.id,
                "title": section.title,
                "access_level": section.access_level,
                "is_scoring": section.is_scoring,
                "questions": questions,
            }
        )

    scores = calculate_scores(assignment, persist=False)
    return AssessmentSummary(
        assignment_id=assignment.id,
        template_name=assignment.template.name if assignment.template else None,
        client_name=assignment.client.full_name if assignment.client else None,
        status=assignment.status,
        total_score=scores["totalScore"],
        section_scores=[
            {"section_id": s["sectionId"], "title": s["title"], "score": s["score"]} for s in scores["sectionScores"]
        ],
        sections=sections,
    )


# ============================================
# Response saving (staff and portal)
# ============================================


def is_empty_response(item: ResponseItem) -> bool:
    return (
        not (item.response_text or "").strip()
        and not item.selected_options
        and item.rating_value is None
    )


def _validate_answer(question: Optional[AssessmentQuestion], item: ResponseItem) -> AssessmentQuestion:
    if question is None:
        raise HTTPException(status_code=400, detail=f"Question {item.question_id} is not part of this assessment")

    if item.rating_value is not None:
        low, high = question.rating_min, question.rating_max
        if (low is not None and item.rating_value < low) or (high is not None and item.rating_value > high):
            raise HTTPException(
                status_code=400,
                detail=f"Rating for question {question.id} must be between {low} and {high}",
            )

    if item.selected_options:
        valid_ids = {option.id for option in question.options}
        unknown = [option_id for option_id in item.selected_options if option_id not in valid_ids]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail=f"Options {unknown} do not belong to question {question.id}",
            )
    return question


def save_responses(
    db: Session,
    assignment: AssessmentAssignment,
    items: list[ResponseItem],
    responder_id: int,
    responder_type: str = "staff",
    access_levels: Optional[Iterable[str]] = None,
) -> tuple[int, int, Optional[AssessmentResponse]]:
    """
    Upsert answers, one row per (assignment, question). Empty answers are
    skipped. Nothing is committed; the caller commits once so a batch is
    all-or-nothing.

    Returns:
        (saved, skipped, last saved row)
    """
    if assignment.status == "completed":
        raise HTTPException(status_code=409, detail="Assessment is completed and locked")

    questions = {q.id: q for s in _visible_sections(assignment.template, access_levels) for q in s.questions}
    existing = {r.question_id: r for r in assignment.responses}

    saved = skipped = 0
    last: Optional[AssessmentResponse] = None
    for item in items:
        if is_empty_response(item):
            skipped += 1
            continue
        question = _validate_answer(questions.get(item.question_id), item)

        response = existing.get(question.id)
        if response is None:
            response = AssessmentResponse(assignment_id=assignment.id, question_id=question.id)
            assignment.responses.append(response)
            existing[question.id] = response
        response.question = question
        response.responder_id = responder_id
        response.responder_type = responder_type
        response.response_text = item.response_text
        response.selected_options = item.selected_options
        response.rating_value = item.rating_value
        response.score_value = score_response(question, response)
        saved += 1
        last = response

    if saved and responder_type == "client" and assignment.status == "pending":
        assignment.status = "client_in_progress"
    return saved, skipped, last


# ============================================
# Service
# ============================================


class AssessmentService:
    def __init__(self, db: Session, ai: Optional[AIService] = None):
        self.db = db
        self.repo = AssessmentRepository()
        self.ai = ai or AIService()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def list_templates(self, user: User, include_inactive: bool = False) -> list[TemplateSummary]:
        templates = self.repo.get_templates(self.db, user.practice_id, include_inactive)
        return [template_to_summary(t) for t in templates]

    def get_template(self, template_id: int, user: User) -> AssessmentTemplate:
        template = self.repo.get_template(self.db, template_id, user.practice_id)
        if not template:
            raise HTTPException(status_code=404, detail="Assessment template not found")
        return template

    def get_template_detail(self, template_id: int, user: User) -> TemplateDetail:
        return template_to_detail(self.get_template(template_id, user))

    def create_template(self, data: TemplateCreate, user: User) -> TemplateDetail:
        template = AssessmentTemplate(
            practice_id=user.practice_id,
            name=data.name,
            description=data.description,
            category=data.category,
            is_standardized=data.is_standardized,
            version=data.version,
            created_by_id=user.id,
        )
        template.sections = [self._build_section(s) for s in data.sections]
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"✅ Created assessment template {template.id} '{template.name}' with {len(template.sections)} sections")
        return template_to_detail(template)

    def update_template(self, template_id: int, data: TemplateUpdate, user: User) -> TemplateDetail:
        template = self.get_template(template_id, user)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(template, key, value)
        self.db.commit()
        self.db.refresh(template)
        return template_to_detail(template)

    def delete_template(self, template_id: int, user: User) -> dict:
        """Soft delete; existing assignments keep their template"""
        template = self.get_template(template_id, user)
        template.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Deactivated assessment template {template.id}")
        return {"message": "Assessment template deleted"}

    # ------------------------------------------------------------------
    # Sections and questions
    # ------------------------------------------------------------------

    def add_section(self, template_id: int, data: SectionCreate, user: User) -> SectionResponse:
        template = self.get_template(template_id, user)
        section = self._build_section(data)
        template.sections.append(section)
        self.db.commit()
        self.db.refresh(section)
        return SectionResponse.model_validate(section)

    def update_section(self, section_id: int, data: SectionUpdate, user: User) -> SectionResponse:
        section = self._get_section(section_id, user)
        for key, value in data.model_dump(exclude_unset=True).items():
            if key in ("title", "access_level", "is_scoring", "sort_order") and value is None:
                continue
            setattr(section, key, value)
        self.db.commit()
        self.db.refresh(section)
        return SectionResponse.model_validate(section)

    def delete_section(self, section_id: int, user: User) -> dict:
        section = self._get_section(section_id, user)
        self.db.delete(section)
        self.db.commit()
        return {"message": "Section deleted"}

    def add_question(self, section_id: int, data: QuestionCreate, user: User) -> QuestionResponse:
        section = self._get_section(section_id, user)
        question = self._build_question(data)
        section.questions.append(question)
        self.db.commit()
        self.db.refresh(question)
        return QuestionResponse.model_validate(question)

    def update_question(self, question_id: int, data: QuestionUpdate, user: User) -> QuestionResponse:
        """A provided options list replaces the existing options"""
        question = self._get_question(question_id, user)
        updates = data.model_dump(exclude_unset=True, exclude={"options"})
        for key, value in updates.items():
            if key in ("question_text", "question_type", "is_required", "contributes_to_score") and value is None:
                continue
            setattr(question, key, value)
        if data.options is not None:
            question.options = [self._build_option(o) for o in data.options]
        self.db.commit()
        self.db.refresh(question)
        return QuestionResponse.model_validate(question)

    def delete_question(self, question_id: int, user: User) -> dict:
        question = self._get_question(question_id, user)
        self.db.delete(question)
        self.db.commit()
        return {"message": "Question deleted"}

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def create_assignment(self, data: AssignmentCreate, user: User) -> AssignmentResponse:
        template = self.get_template(data.template_id, user)
        if not template.is_active:
            raise HTTPException(status_code=400, detail="Assessment template is not active")
        client = ClientRepository.get_visible(self.db, data.client_id, user)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")

        assignment = AssessmentAssignment(
            practice_id=user.practice_id,
            template_id=template.id,
            client_id=client.id,
            assigned_by_id=user.id,
            status="pending",
            due_date=data.due_date,
            notes=data.notes,
        )
        self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"📋 Assigned template {template.id} to client {client.id} (assignment {assignment.id})")
        return assignment_to_response(assignment)

    def list_assignments(
        self, user: User, status: Optional[str] = None, client_id: Optional[int] = None
    ) -> list[AssignmentResponse]:
        client_ids = None
        if user.role == "therapist":
            client_ids = [c.id for c in ClientRepository.base_query(self.db, user).with_entities(Client.id).all()]
        assignments = self.repo.list_assignments(self.db, user.practice_id, status, client_id, client_ids)
        return [assignment_to_response(a) for a in assignments]

    def list_client_assignments(self, client_id: int, user: User) -> list[AssignmentResponse]:
        if not ClientRepository.get_visible(self.db, client_id, user):
            raise HTTPException(status_code=404, detail="Client not found")
        return self.list_assignments(user, client_id=client_id)

    def get_assignment(self, assignment_id: int, user: User) -> AssessmentAssignment:
        assignment = self.repo.get_assignment(self.db, assignment_id, user.practice_id)
        if not assignment or not ClientRepository.get_visible(self.db, assignment.client_id, user):
            raise HTTPException(status_code=404, detail="Assessment assignment not found")
        return assignment

    def get_assignment_detail(self, assignment_id: int, user: User, request: Optional[Request] = None) -> AssignmentDetail:
        assignment = self.get_assignment(assignment_id, user)
        AuditLogger(self.db, request).log_action(
            "view_assessment",
            user=user,
            resource_type="assessment_assignment",
            resource_id=assignment.id,
            client_id=assignment.client_id,
            risk_level="medium",
            hipaa_relevant=True,
        )
        detail = AssignmentDetail(**assignment_to_response(assignment).model_dump())
        detail.template = template_to_detail(assignment.template)
        detail.responses = [AnswerResponse.model_validate(r) for r in assignment.responses]
        return detail

    def update_assignment(self, assignment_id: int, data: AssignmentUpdate, user: User) -> AssignmentResponse:
        assignment = self.get_assignment(assignment_id, user)
        updates = data.model_dump(exclude_unset=True)

        status = updates.pop("status", None)
        if status is not None and status not in ASSIGNMENT_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status '{status}'. Must be one of: {', '.join(ASSIGNMENT_STATUSES)}",
            )
        if assignment.status == "completed" and status not in (None, "completed"):
            raise HTTPException(status_code=409, detail="Assessment is completed and locked")
        for key, value in updates.items():
            setattr(assignment, key, value)

        if status == "completed" and assignment.status != "completed":
            self.db.commit()
            return self.complete_assignment(assignment.id, user)
        if status is not None:
            assignment.status = status
            if status == "waiting_for_therapist" and not assignment.client_submitted_at:
                assignment.client_submitted_at = utcnow()
            if status == "therapist_completed" and not assignment.therapist_completed_at:
                assignment.therapist_completed_at = utcnow()
        self.db.commit()
        self.db.refresh(assignment)
        return assignment_to_response(assignment)

    def delete_assignment(self, assignment_id: int, user: User) -> dict:
        assignment = self.get_assignment(assignment_id, user)
        self.db.delete(assignment)
        self.db.commit()
        logger.info(f"🗑️ Deleted assessment assignment {assignment_id}")
        return {"message": "Assessment assignment deleted"}

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def list_responses(self, assignment_id: int, user: User) -> list[AnswerResponse]:
        assignment = self.get_assignment(assignment_id, user)
        return [AnswerResponse.model_validate(r) for r in assignment.responses]

    def save_response(self, assignment_id: int, item: ResponseItem, user: User) -> dict:
        assignment = self.get_assignment(assignment_id, user)
        saved, skipped, response = save_responses(self.db, assignment, [item], user.id, "staff")
        self.db.commit()
        if response is not None:
            self.db.refresh(response)
        return {
            "saved": saved,
            "skipped": skipped,
            "response": AnswerResponse.model_validate(response) if response is not None else None,
        }

    def save_responses_batch(self, assignment_id: int, items: list[ResponseItem], user: User) -> dict:
        assignment = self.get_assignment(assignment_id, user)
        saved, skipped, _ = save_responses(self.db, assignment, items, user.id, "staff")
        self.db.commit()
        logger.info(f"📥 Assignment {assignment.id}: saved {saved} responses, skipped {skipped}")
        return {"saved": saved, "skipped": skipped}

    # ------------------------------------------------------------------
    # Completion and summary
    # ------------------------------------------------------------------

    def complete_assignment(self, assignment_id: int, user: User) -> AssignmentResponse:
        assignment = self.get_assignment(assignment_id, user)
        if assignment.status == "completed":
            raise HTTPException(status_code=409, detail="Assessment is already completed")

        scores = calculate_scores(assignment)
        now = utcnow()
        assignment.status = "completed"
        assignment.therapist_completed_at = now
        assignment.completed_at = now
        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"✅ Assignment {assignment.id} completed with total score {scores['totalScore']}")

        NotificationService(self.db).process_event(
            user.practice_id,
            "assessment_completed",
            assignment_event_data(assignment),
            "assessment_assignment",
            actor_id=user.id,
        )
        return assignment_to_response(assignment)

    def get_summary(self, assignment_id: int, user: User) -> AssessmentSummary:
        return build_summary(self.get_assignment(assignment_id, user))

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_report(self, assignment_id: int, user: User) -> ReportResponse:
        assignment = self.get_assignment(assignment_id, user)
        if assignment.status != "completed":
            raise HTTPException(status_code=400, detail="Assessment must be completed before generating a report")
        report = assignment.report
        if report and report.is_finalized:
            raise HTTPException(status_code=409, detail="Report is finalized")
        if not self.ai.is_configured:
            raise HTTPException(status_code=503, detail="AI service not configured")

        sections = assignment.template.sections
        responses = {r.question_id: r for r in assignment.responses}
        content = self.ai.generate_assessment_report(
            client_name=assignment.client.full_name if assignment.client else "Client",
            template_name=assignment.template.name,
            formatted_responses=format_assignment_text(sections, responses),
            section_prompts=[s.ai_report_prompt for s in sections if s.ai_report_prompt],
            total_score=assignment.total_score,
        )

        if report is None:
            report = AssessmentReport(assignment_id=assignment.id, created_by_id=user.id)
            self.db.add(report)
        report.generated_content = content
        report.draft_content = content
        report.generated_at = utcnow()
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"🤖 Generated report for assignment {assignment.id}")
        return ReportResponse.model_validate(report)

    def get_report(self, assignment_id: int, user: User) -> ReportResponse:
        return ReportResponse.model_validate(self._get_report(assignment_id, user))

    def save_report_draft(self, assignment_id: int, draft_content: str, user: User) -> ReportResponse:
        assignment = self.get_assignment(assignment_id, user)
        report = assignment.report
        if report is None:
            report = AssessmentReport(assignment_id=assignment.id, created_by_id=user.id)
            self.db.add(report)
        elif report.is_finalized:
            raise HTTPException(status_code=409, detail="Report is finalized")
        report.draft_content = draft_content
        self.db.commit()
        self.db.refresh(report)
        return ReportResponse.model_validate(report)

    def finalize_report(self, assignment_id: int, user: User) -> ReportResponse:
        report = self._get_report(assignment_id, user)
        if report.is_finalized:
            raise HTTPException(status_code=409, detail="Report is already finalized")
        content = report.draft_content or report.generated_content
        if not content or not content.strip():
            raise HTTPException(status_code=400, detail="Report has no content to finalize")
        report.final_content = content
        report.is_finalized = True
        report.finalized_at = utcnow()
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"🔒 Report for assignment {assignment_id} finalized by user {user.id}")
        return ReportResponse.model_validate(report)

    def unfinalize_report(self, assignment_id: int, user: User) -> ReportResponse:
        """Reopen a finalized report; editing resumes from the final text"""
        report = self._get_report(assignment_id, user)
        if not report.is_finalized:
            raise HTTPException(status_code=400, detail="Report is not finalized")
        report.draft_content = report.final_content
        report.final_content = None
        report.is_finalized = False
        report.finalized_at = None
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"🔓 Report for assignment {assignment_id} reopened by user {user.id}")
        return ReportResponse.model_validate(report)

    def generate_report_pdf(self, assignment_id: int, user: User, request: Optional[Request] = None) -> bytes:
        report = self._get_report(assignment_id, user)
        content = report.final_content or report.draft_content or report.generated_content
        if not content:
            raise HTTPException(status_code=404, detail="Report has no content")
        assignment = report.assignment
        AuditLogger(self.db, request).log_action(
            "export_assessment_report_pdf",
            user=user,
            resource_type="assessment_report",
            resource_id=report.id,
            client_id=assignment.client_id,
            risk_level="high",
            hipaa_relevant=True,
        )
        return AssessmentReportPDFGenerator(assignment, content, user.practice).generate()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_report(self, assignment_id: int, user: User) -> AssessmentReport:
        assignment = self.get_assignment(assignment_id, user)
        if assignment.report is None:
            raise HTTPException(status_code=404, detail="Report not found")
        return assignment.report

    def _get_section(self, section_id: int, user: User) -> AssessmentSection:
        section = self.repo.get_section(self.db, section_id, user.practice_id)
        if not section:
            raise HTTPException(status_code=404, detail="Section not found")
        return section

    def _get_question(self, question_id: int, user: User) -> AssessmentQuestion:
        question = self.repo.get_question(self.db, question_id, user.practice_id)
        if not question:
            raise HTTPException(status_code=404, detail="Question not found")
        return question

    @staticmethod
    def _build_option(data: OptionCreate) -> AssessmentQuestionOption:
        return AssessmentQuestionOption(
            option_text=data.option_text,
            option_value=data.option_value,
            sort_order=data.sort_order,
        )

    def _build_question(self, data: QuestionCreate) -> AssessmentQuestion:
        question = AssessmentQuestion(**data.model_dump(exclude={"options"}))
        question.options = [self._build_option(o) for o in data.options]
        return question

    def _build_section(self, data: SectionCreate) -> AssessmentSection:
        section = AssessmentSection(**data.model_dump(exclude={"questions"}))
        section.questions = [self._build_question(q) for q in data.questions]
        return section
