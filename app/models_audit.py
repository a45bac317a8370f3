"""
HIPAA audit trail models
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base

RISK_LEVELS = ["low", "medium", "high", "critical"]


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    username = Column(String(100), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    result = Column(String(20), nullable=False)  # success, failure, blocked
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(50), nullable=True)
    client_id = Column(Integer, nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    risk_level = Column(String(20), default="low", nullable=False)
    hipaa_relevant = Column(Boolean, default=False, nullable=False)
    access_reason = Column(Text, nullable=True)
    timestamp = Column(DateTime, server_default=func.now(), nullable=False, index=True)


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False)
    failure_reason = Column(String(100), nullable=True)
    portal = Column(Boolean, default=False, nullable=False)
    attempted_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
