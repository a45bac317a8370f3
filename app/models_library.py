"""
Clinical library models - reusable phrases grouped in a category tree and linked by typed connections
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

CONNECTION_TYPES = [
    "relates_to",
    "follows_from",
    "supports",
    "alternative_to",
    "prerequisite_for",
    "expands_on",
]


class LibraryCategory(Base):
    __tablename__ = "library_categories"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("library_categories.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    entries = relationship("LibraryEntry", back_populates="category")


class LibraryEntry(Base):
    __tablename__ = "library_entries"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("library_categories.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list)
    usage_count = Column(Integer, default=0, nullable=False)
    sort_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    category = relationship("LibraryCategory", back_populates="entries")


class LibraryEntryConnection(Base):
    __tablename__ = "library_entry_connections"

    id = Column(Integer, primary_key=True, index=True)
    practice_id = Column(Integer, ForeignKey("practices.id"), nullable=False, index=True)
    from_entry_id = Column(Integer, ForeignKey("library_entries.id"), nullable=False, index=True)
    to_entry_id = Column(Integer, ForeignKey("library_entries.id"), nullable=False, index=True)
    connection_type = Column(String(30), default="relates_to", nullable=False)
    strength = Column(Integer, default=5, nullable=False)  # 1-10
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    from_entry = relationship("LibraryEntry", foreign_keys=[from_entry_id])
    to_entry = relationship("LibraryEntry", foreign_keys=[to_entry_id])
