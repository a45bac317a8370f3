"""Task domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ...shared.schemas import CamelModel, UTCDateTime
from ...shared.validators import TASK_PRIORITIES, TASK_STATUSES, validate_choice


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    client_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[UTCDateTime] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, TASK_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v):
        return validate_choice(v, TASK_PRIORITIES, "priority")


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    client_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[UTCDateTime] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, TASK_STATUSES, "status")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v):
        return validate_choice(v, TASK_PRIORITIES, "priority")


class TaskResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    created_by_id: Optional[int] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskCommentCreate(CamelModel):
    content: str = Field(..., min_length=1)


class TaskCommentResponse(CamelModel):
    id: int
    task_id: int
    author_id: int
    author_name: Optional[str] = None
    content: str
    created_at: Optional[datetime] = None
