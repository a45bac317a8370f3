"""Notification domain schemas"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import Field, field_validator

from ...models_notification import NOTIFICATION_EVENTS, NOTIFICATION_PRIORITIES
from ...shared.schemas import CamelModel
from ...shared.validators import validate_choice

ConditionRules = Union[dict[str, Any], list[dict[str, Any]]]


class NotificationResponse(CamelModel):
    id: int
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    priority: str
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    grouping_key: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    is_read: bool
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationStats(CamelModel):
    total: int
    unread: int
    by_type: dict[str, int]
    by_priority: dict[str, int]


class CleanupResult(CamelModel):
    deleted: int


# ============================================
# Preferences
# ============================================


class PreferenceItem(CamelModel):
    trigger_type: str
    in_app_enabled: bool = True
    email_enabled: bool = False

    @field_validator("trigger_type")
    @classmethod
    def check_trigger_type(cls, v):
        return validate_choice(v, NOTIFICATION_EVENTS, "trigger type")


class PreferencesUpdate(CamelModel):
    preferences: list[PreferenceItem]


# ============================================
# Triggers and templates
# ============================================


class TriggerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    event_type: str
    is_active: bool = True
    priority: str = "medium"
    condition_rules: Optional[ConditionRules] = None
    recipient_rules: dict[str, Any]
    template_id: Optional[int] = None

    @field_validator("event_type")
    @classmethod
    def check_event_type(cls, v):
        return validate_choice(v, NOTIFICATION_EVENTS, "event type")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v):
        return validate_choice(v, NOTIFICATION_PRIORITIES, "priority")


class TriggerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    event_type: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[str] = None
    condition_rules: Optional[ConditionRules] = None
    recipient_rules: Optional[dict[str, Any]] = None
    template_id: Optional[int] = None

    @field_validator("event_type")
    @classmethod
    def check_event_type(cls, v):
        return validate_choice(v, NOTIFICATION_EVENTS, "event type")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v):
        return validate_choice(v, NOTIFICATION_PRIORITIES, "priority")


class TriggerResponse(CamelModel):
    id: int
    name: str
    event_type: str
    is_active: bool
    priority: str
    condition_rules: Optional[ConditionRules] = None
    recipient_rules: dict[str, Any]
    template_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str
    subject: str = Field(..., min_length=1, max_length=255)
    body_template: str = Field(..., min_length=1)
    action_url_template: Optional[str] = Field(None, max_length=500)
    action_label: Optional[str] = Field(None, max_length=100)

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        return validate_choice(v, NOTIFICATION_EVENTS, "template type")


class TemplateResponse(CamelModel):
    id: int
    name: str
    type: str
    subject: str
    body_template: str
    action_url_template: Optional[str] = None
    action_label: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
