"""Assessment repository - Database operations for templates, assignments and reports"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models_assessment import (
    AssessmentAssignment,
    AssessmentQuestion,
    AssessmentReport,
    AssessmentSection,
    AssessmentTemplate,
)


class AssessmentRepository:
    """Repository for assessment database operations"""

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @staticmethod
    def get_templates(db: Session, practice_id: int, include_inactive: bool = False) -> list[AssessmentTemplate]:
        query = db.query(AssessmentTemplate).filter(AssessmentTemplate.practice_id == practice_id)
        if not include_inactive:
            query = query.filter(AssessmentTemplate.is_active.is_(True))
        return query.order_by(AssessmentTemplate.name.asc()).all()

    @staticmethod
    def get_template(db: Session, template_id: int, practice_id: int) -> Optional[AssessmentTemplate]:
        return (
            db.query(AssessmentTemplate)
            .filter(AssessmentTemplate.id == template_id, AssessmentTemplate.practice_id == practice_id)
            .first()
        )

    @staticmethod
    def get_section(db: Session, section_id: int, practice_id: int) -> Optional[AssessmentSection]:
        return (
            db.query(AssessmentSection)
            .join(AssessmentTemplate, AssessmentSection.template_id == AssessmentTemplate.id)
            .filter(AssessmentSection.id == section_id, AssessmentTemplate.practice_id == practice_id)
            .first()
        )

    @staticmethod
    def get_question(db: Session, question_id: int, practice_id: int) -> Optional[AssessmentQuestion]:
        return (
            db.query(AssessmentQuestion)
            .join(AssessmentSection, AssessmentQuestion.section_id == AssessmentSection.id)
            .join(AssessmentTemplate, AssessmentSection.template_id == AssessmentTemplate.id)
            .filter(AssessmentQuestion.id == question_id, AssessmentTemplate.practice_id == practice_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    @staticmethod
    def get_assignment(db: Session, assignment_id: int, practice_id: int) -> Optional[AssessmentAssignment]:
        return (
            db.query(AssessmentAssignment)
            .filter(AssessmentAssignment.id == assignment_id, AssessmentAssignment.practice_id == practice_id)
            .first()
        )

    @staticmethod
    def list_assignments(
        db: Session,
        practice_id: int,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        client_ids: Optional[list[int]] = None,
    ) -> list[AssessmentAssignment]:
        query = (
            db.query(AssessmentAssignment)
            .options(
                joinedload(AssessmentAssignment.template),
                joinedload(AssessmentAssignment.client),
                joinedload(AssessmentAssignment.assigned_by),
            )
            .filter(AssessmentAssignment.practice_id == practice_id)
        )
        if status:
            query = query.filter(AssessmentAssignment.status == status)
        if client_id is not None:
            query = query.filter(AssessmentAssignment.client_id == client_id)
        if client_ids is not None:
            query = query.filter(AssessmentAssignment.client_id.in_(client_ids))
        return query.order_by(AssessmentAssignment.created_at.desc(), AssessmentAssignment.id.desc()).all()

    @staticmethod
    def get_report(db: Session, assignment_id: int) -> Optional[AssessmentReport]:
        return db.query(AssessmentReport).filter(AssessmentReport.assignment_id == assignment_id).first()
