"""
Assessment Models - questionnaire templates, client assignments, responses and reports
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ASSIGNMENT_STATUSES = [
    "pending",
    "client_in_progress",
    "waiting_for_therapist",
    "therapist_completed",
    "completed",
]
SECTION_ACCESS_LEVELS = ["therapist_only", "client_only", "shared"]
CLIENT_ACCESS_LEVELS = ["client_only", "shared"]
QUESTION_TYPES = [
    "short_text",
    "long_text",
    "multiple_choice",
    "rating_scale",
    "checkbox",
    "date",
    "number",
]


class AssessmentTemplate(Base):
    __tablename__ = "assessment_templates"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    is_standardized = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(String(20), default="1.0")
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    sections = relationship(
        "AssessmentSection",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="AssessmentSection.sort_order",
    )


class AssessmentSection(Base):
    __tablename__ = "assessment_sections"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("assessment_templates.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    access_level = Column(String(20), default="therapist_only", nullable=False)
    is_scoring = Column(Boolean, default=False, nullable=False)
    report_mapping = Column(String(50), nullable=True)
    ai_report_prompt = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    template = relationship("AssessmentTemplate", back_populates="sections")
    questions = relationship(
        "AssessmentQuestion",
        back_populates="section",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestion.sort_order",
    )


class AssessmentQuestion(Base):
    __tablename__ = "assessment_questions"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("assessment_sections.id"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(30), nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0)
    rating_min = Column(Integer, nullable=True)
    rating_max = Column(Integer, nullable=True)
    rating_labels = Column(JSON, nullable=True)  # list[str], index = value - rating_min
    contributes_to_score = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    section = relationship("AssessmentSection", back_populates="questions")
    options = relationship(
        "AssessmentQuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestionOption.sort_order",
    )
    responses = relationship("AssessmentResponse", back_populates="question", cascade="all, delete-orphan")


class AssessmentQuestionOption(Base):
    __tablename__ = "assessment_question_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("assessment_questions.id"), nullable=False, index=True)
    option_text = Column(Text, nullable=False)
    option_value = Column(Float, nullable=True)
    sort_order = Column(Integer, default=0)

    question = relationship("AssessmentQuestion", back_populates="options")


class AssessmentAssignment(Base):
    __tablename__ = "assessment_assignments"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("assessment_templates.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String(30), default="pending", nullable=False)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    client_submitted_at = Column(DateTime, nullable=True)
    therapist_completed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    total_score = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    template = relationship("AssessmentTemplate")
    client = relationship("Client", back_populates="assessment_assignments")
    assigned_by = relationship("User")
    responses = relationship("AssessmentResponse", back_populates="assignment", cascade="all, delete-orphan")
    report = relationship(
        "AssessmentReport", back_populates="assignment", uselist=False, cascade="all, delete-orphan"
    )


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"
    __table_args__ = (
        UniqueConstraint("assignment_id", "question_id", name="uq_assessment_responses_assignment_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assessment_assignments.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("assessment_questions.id"), nullable=False)
    responder_id = Column(Integer, nullable=False)  # users.id or clients.id depending on responder_type
    responder_type = Column(String(10), default="staff", nullable=False)  # staff, client
    response_text = Column(Text, nullable=True)
    selected_options = Column(JSON, nullable=True)  # list of option ids
    rating_value = Column(Integer, nullable=True)
    score_value = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assignment = relationship("AssessmentAssignment", back_populates="responses")
    question = relationship("AssessmentQuestion", back_populates="responses")


class AssessmentReport(Base):
    __tablename__ = "assessment_reports"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("assessment_assignments.id"), nullable=False, unique=True, index=True
    )
    generated_content = Column(Text, nullable=True)
    draft_content = Column(Text, nullable=True)
    final_content = Column(Text, nullable=True)
    is_finalized = Column(Boolean, default=False, nullable=False)
    finalized_at = Column(DateTime, nullable=True)
    generated_at = Column(DateTime, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assignment = relationship("AssessmentAssignment", back_populates="report")
