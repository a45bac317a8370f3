"""Library domain schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator

from ...models_library import CONNECTION_TYPES
from ...shared.schemas import CamelModel
from ...shared.validators import validate_choice

# ============================================
# Categories
# ============================================


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: Optional[int] = None


class CategoryResponse(CamelModel):
    id: int
    parent_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    sort_order: Optional[int] = 0
    is_active: bool
    entry_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryTreeNode(CategoryResponse):
    children: list["CategoryTreeNode"] = []


CategoryTreeNode.model_rebuild()


# ============================================
# Entries
# ============================================


class EntryCreate(CamelModel):
    category_id: int
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    tags: list[str] = []
    sort_order: int = 0


class EntryUpdate(CamelModel):
    category_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    tags: Optional[list[str]] = None
    sort_order: Optional[int] = None


class EntryResponse(CamelModel):
    id: int
    category_id: int
    category_name: Optional[str] = None
    title: str
    content: str
    tags: Optional[list[str]] = None
    usage_count: int
    sort_order: Optional[int] = 0
    is_active: bool
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================
# Connections
# ============================================


class ConnectionCreate(CamelModel):
    from_entry_id: int
    to_entry_id: int
    connection_type: str = "relates_to"
    strength: int = Field(5, ge=1, le=10)
    description: Optional[str] = None

    @field_validator("connection_type")
    @classmethod
    def check_connection_type(cls, v):
        return validate_choice(v, CONNECTION_TYPES, "connection type")


class ConnectionUpdate(CamelModel):
    connection_type: Optional[str] = None
    strength: Optional[int] = Field(None, ge=1, le=10)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("connection_type")
    @classmethod
    def check_connection_type(cls, v):
        return validate_choice(v, CONNECTION_TYPES, "connection type")


class ConnectionResponse(CamelModel):
    id: int
    from_entry_id: int
    to_entry_id: int
    from_entry_title: Optional[str] = None
    to_entry_title: Optional[str] = None
    connection_type: str
    strength: int
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None


class ConnectedEntry(CamelModel):
    connection_id: int
    connection_type: str
    strength: int
    direction: Literal["outgoing", "incoming"]
    entry: EntryResponse
