import uuid

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


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Practice(Base):
    """A therapy practice - the tenant every other record belongs to"""

    __tablename__ = "practices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    timezone = Column(String(64), default="America/New_York", nullable=False)
    # Portal booking window, in practice-local hours
    business_hours_start = Column(Integer, default=9, nullable=False)
    business_hours_end = Column(Integer, default=17, nullable=False)
    slot_minutes = Column(Integer, default=60, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    users = relationship("User", back_populates="practice")
    clients = relationship("Client", back_populates="practice")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(30), default="therapist", nullable=False)  # admin, supervisor, therapist
    title = Column(String(100), nullable=True)  # e.g. LCSW, PsyD
    phone = Column(String(50), nullable=True)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    practice = relationship("Practice", back_populates="users")
    supervisor = relationship("User", remote_side=[id])


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("practice_id", "client_id", name="uq_clients_practice_client_id"),)

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    client_id = Column(String(20), nullable=False, index=True)  # CL-YYYY-NNNN

    # Personal information
    full_name = Column(String(255), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(30), nullable=True)  # male, female, non_binary, prefer_not_to_say
    pronouns = Column(String(50), nullable=True)
    preferred_language = Column(String(50), default="English")
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)

    # Address
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)

    # Emergency contact
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    emergency_contact_relationship = Column(String(100), nullable=True)

    # Care
    status = Column(String(20), default="pending", nullable=False)  # active, inactive, pending
    stage = Column(String(20), default="intake", nullable=False)  # intake, assessment, psychotherapy
    client_type = Column(String(20), default="individual", nullable=False)
    assigned_therapist_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Referral
    referral_source = Column(String(255), nullable=True)
    referral_date = Column(Date, nullable=True)
    referral_notes = Column(Text, nullable=True)

    # Insurance
    insurance_provider = Column(String(255), nullable=True)
    policy_number = Column(String(100), nullable=True)
    group_number = Column(String(100), nullable=True)
    copay_amount = Column(Float, nullable=True)
    deductible = Column(Float, nullable=True)

    # Key dates
    start_date = Column(Date, nullable=True)
    last_session_date = Column(DateTime, nullable=True)
    next_appointment_date = Column(DateTime, nullable=True)

    # Client portal
    has_portal_access = Column(Boolean, default=False, nullable=False)
    portal_email = Column(String(255), nullable=True, index=True)
    portal_password_hash = Column(String(255), nullable=True)
    portal_activated_at = Column(DateTime, nullable=True)
    portal_last_login = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    practice = relationship("Practice", back_populates="clients")
    assigned_therapist = relationship("User", foreign_keys=[assigned_therapist_id])
    sessions = relationship("TherapySession", back_populates="client", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="client", cascade="all, delete-orphan")
    client_notes = relationship("Note", back_populates="client", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="client", cascade="all, delete-orphan")
    session_notes = relationship("SessionNote", back_populates="client", cascade="all, delete-orphan")
    assessment_assignments = relationship(
        "AssessmentAssignment", back_populates="client", cascade="all, delete-orphan"
    )


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("practice_id", "room_number", name="uq_rooms_practice_number"),)

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    room_number = Column(String(50), nullable=False)
    room_name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=True)
    equipment = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class TherapySession(Base):
    """A scheduled appointment between a client and a therapist"""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    session_date = Column(DateTime, nullable=False, index=True)  # UTC
    duration = Column(Integer, default=50, nullable=False)  # minutes
    session_type = Column(String(30), default="psychotherapy", nullable=False)
    status = Column(String(20), default="scheduled", nullable=False)  # scheduled, completed, cancelled, no_show
    notes = Column(Text, nullable=True)
    calculated_rate = Column(Float, nullable=True)
    booked_via_portal = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="sessions")
    therapist = relationship("User", foreign_keys=[therapist_id])
    service = relationship("Service")
    room = relationship("Room")
    billing = relationship(
        "SessionBilling", back_populates="session", uselist=False, cascade="all, delete-orphan"
    )
    session_notes = relationship("SessionNote", back_populates="session", cascade="all, delete-orphan")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, in_progress, completed, overdue
    priority = Column(String(20), default="medium", nullable=False)  # low, medium, high, urgent
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="tasks")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    comments = relationship(
        "TaskComment", back_populates="task", cascade="all, delete-orphan", order_by="TaskComment.created_at"
    )


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    task = relationship("Task", back_populates="comments")
    author = relationship("User")


class Note(Base):
    """General (non-session) note on a client record"""

    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    note_type = Column(String(50), default="general", nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="client_notes")
    author = relationship("User")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_by_client = Column(Boolean, default=False, nullable=False)
    file_name = Column(String(500), nullable=False)  # Storage key
    original_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    category = Column(String(50), default="general", nullable=False)
    is_shared_in_portal = Column(Boolean, default=False, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="documents")
    uploaded_by = relationship("User")
