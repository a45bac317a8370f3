"""
Billing Models - service catalog (CPT codes) and per-session billing records
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

PAYMENT_STATUSES = ["pending", "billed", "paid", "denied", "refunded"]


class Service(Base):
    """Billable service offered by the practice"""

    __tablename__ = "services"
    __table_args__ = (UniqueConstraint("practice_id", "service_code", name="uq_services_practice_code"),)

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    service_code = Column(String(50), nullable=False)  # e.g. 90834
    service_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    base_rate = Column(Float, nullable=False)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    therapist_visible = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class SessionBilling(Base):
    """Billing record for a completed session (one per session)"""

    __tablename__ = "session_billing"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, unique=True, index=True)
    service_code = Column(String(50), nullable=False)
    units = Column(Integer, default=1, nullable=False)
    rate_per_unit = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    insurance_covered = Column(Boolean, default=False, nullable=False)
    copay_amount = Column(Float, nullable=True)
    billing_date = Column(Date, nullable=True)

    # Payment tracking
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_amount = Column(Float, nullable=True)
    payment_date = Column(Date, nullable=True)
    payment_reference = Column(String(100), nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    session = relationship("TherapySession", back_populates="billing")
