"""
Session Note model - clinical documentation for a single therapy session
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

RISK_FIELDS = [
    "risk_suicidal_ideation",
    "risk_self_harm",
    "risk_homicidal_ideation",
    "risk_psychosis",
    "risk_substance_use",
    "risk_impulsivity",
    "risk_aggression",
    "risk_trauma_symptoms",
    "risk_non_adherence",
    "risk_support_system",
]

CLINICAL_TEXT_FIELDS = [
    "session_focus",
    "symptoms",
    "short_term_goals",
    "intervention",
    "progress",
    "remarks",
    "recommendations",
]


class SessionNote(Base):
    __tablename__ = "session_notes"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(DateTime, nullable=False)

    # Clinical content
    session_focus = Column(Text, nullable=True)
    symptoms = Column(Text, nullable=True)
    short_term_goals = Column(Text, nullable=True)
    intervention = Column(Text, nullable=True)
    progress = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)

    # Ratings
    client_rating = Column(Integer, nullable=True)  # 0-10
    therapist_rating = Column(Integer, nullable=True)  # 0-10
    progress_toward_goals = Column(Integer, nullable=True)  # 0-10
    mood_before = Column(Integer, nullable=True)  # 1-10
    mood_after = Column(Integer, nullable=True)  # 1-10

    # Risk assessment (0 = none, 4 = severe)
    risk_suicidal_ideation = Column(Integer, default=0)
    risk_self_harm = Column(Integer, default=0)
    risk_homicidal_ideation = Column(Integer, default=0)
    risk_psychosis = Column(Integer, default=0)
    risk_substance_use = Column(Integer, default=0)
    risk_impulsivity = Column(Integer, default=0)
    risk_aggression = Column(Integer, default=0)
    risk_trauma_symptoms = Column(Integer, default=0)
    risk_non_adherence = Column(Integer, default=0)
    risk_support_system = Column(Integer, default=0)

    # Content lifecycle: generated (AI) -> draft (editable) -> final (locked)
    generated_content = Column(Text, nullable=True)
    draft_content = Column(Text, nullable=True)
    final_content = Column(Text, nullable=True)
    is_draft = Column(Boolean, default=True, nullable=False)
    is_finalized = Column(Boolean, default=False, nullable=False)
    finalized_at = Column(DateTime, nullable=True)
    finalized_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # AI generation
    ai_enabled = Column(Boolean, default=False, nullable=False)
    ai_template = Column(String(50), nullable=True)
    custom_ai_prompt = Column(Text, nullable=True)
    ai_processing_status = Column(String(20), default="idle", nullable=False)  # idle, processing, completed, error
    ai_error = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    session = relationship("TherapySession", back_populates="session_notes")
    client = relationship("Client", back_populates="session_notes")
    therapist = relationship("User", foreign_keys=[therapist_id])
    finalized_by = relationship("User", foreign_keys=[finalized_by_id])


CLINICAL_FIELD_LABELS = {
    "session_focus": "Session Focus",
    "symptoms": "Symptoms",
    "short_term_goals": "Short-Term Goals",
    "intervention": "Interventions",
    "progress": "Progress",
    "remarks": "Clinical Remarks",
    "recommendations": "Recommendations",
}


def compose_clinical_content(note: SessionNote) -> str:
    """Plain note text built from the structured clinical fields"""
    parts = []
    for field in CLINICAL_TEXT_FIELDS:
        value = getattr(note, field)
        if value:
            parts.append(f"{CLINICAL_FIELD_LABELS[field]}:\n{value.strip()}")
    return "\n\n".join(parts)


def best_available_content(note: SessionNote) -> str:
    """final, else draft, else generated, else composed from the clinical fields"""
    return note.final_content or note.draft_content or note.generated_content or compose_clinical_content(note)
