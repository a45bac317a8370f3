"""
Notification Models - in-app notifications, event triggers, templates and user preferences
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

NOTIFICATION_PRIORITIES = ["low", "medium", "high", "urgent"]
NOTIFICATION_EVENTS = [
    "client_created",
    "client_assigned",
    "session_scheduled",
    "session_cancelled",
    "task_assigned",
    "assessment_completed",
    "assessment_submitted",
    "session_note_finalized",
    "document_uploaded",
]


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    priority = Column(String(20), default="medium", nullable=False)
    action_url = Column(String(500), nullable=True)
    action_label = Column(String(100), nullable=True)
    grouping_key = Column(String(100), nullable=True, index=True)
    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    subject = Column(String(255), nullable=False)  # {{placeholders}} allowed
    body_template = Column(Text, nullable=False)
    action_url_template = Column(String(500), nullable=True)
    action_label = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class NotificationTrigger(Base):
    __tablename__ = "notification_triggers"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    event_type = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(String(20), default="medium", nullable=False)
    # {"field": value} or [{"field": ..., "operator": ..., "value": ...}]
    condition_rules = Column(JSON, nullable=True)
    # {"roles": [...], "specificUsers": [...], "assignedTherapist": bool, "supervisorOfTherapist": bool}
    recipient_rules = Column(JSON, nullable=False)
    template_id = Column(Integer, ForeignKey("notification_templates.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    template = relationship("NotificationTemplate")


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "trigger_type", name="uq_notification_preferences_user_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trigger_type = Column(String(50), nullable=False)  # matches event_type
    in_app_enabled = Column(Boolean, default=True, nullable=False)
    email_enabled = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
