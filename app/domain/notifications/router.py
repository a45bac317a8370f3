"""
Notification router - inbox, preferences and admin trigger/template management
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User
from ...shared.schemas import BulkResult, CountResponse, MessageResponse
from .schemas import (
    CleanupResult,
    NotificationResponse,
    NotificationStats,
    PreferenceItem,
    PreferencesUpdate,
    TemplateCreate,
    TemplateResponse,
    TriggerCreate,
    TriggerResponse,
    TriggerUpdate,
)
from .service import DEFAULT_LIST_LIMIT, NotificationInboxService

router = APIRouter(prefix="/api", tags=["Notifications"])


def get_inbox_service(db: Session = Depends(get_db)) -> NotificationInboxService:
    """Dependency injection for NotificationInboxService"""
    return NotificationInboxService(db)


# ============================================
# Inbox
# ============================================


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.list_notifications(current_user, unread_only, limit)


@router.get("/notifications/unread-count", response_model=CountResponse)
async def unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.unread_count(current_user)


@router.post("/notifications/mark-all-read", response_model=BulkResult)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.mark_all_read(current_user)


@router.get("/notifications/preferences", response_model=list[PreferenceItem])
async def get_preferences(
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.get_preferences(current_user)


@router.put("/notifications/preferences", response_model=list[PreferenceItem])
async def update_preferences(
    data: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.update_preferences(data.preferences, current_user)


@router.get("/notifications/stats", response_model=NotificationStats)
async def notification_stats(
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.get_stats(current_user)


@router.post("/notifications/cleanup", response_model=CleanupResult)
async def cleanup_notifications(
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    """Delete expired notifications across the practice"""
    return service.cleanup_expired(current_user)


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.mark_read(notification_id, current_user)


@router.delete("/notifications/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.delete_notification(notification_id, current_user)


# ============================================
# Triggers and templates (admin)
# ============================================


@router.get("/notification-triggers", response_model=list[TriggerResponse])
async def list_triggers(
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.list_triggers(current_user)


@router.post("/notification-triggers", response_model=TriggerResponse, status_code=201)
async def create_trigger(
    data: TriggerCreate,
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.create_trigger(data, current_user)


@router.put("/notification-triggers/{trigger_id}", response_model=TriggerResponse)
async def update_trigger(
    trigger_id: int,
    data: TriggerUpdate,
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.update_trigger(trigger_id, data, current_user)


@router.delete("/notification-triggers/{trigger_id}", response_model=MessageResponse)
async def delete_trigger(
    trigger_id: int,
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.delete_trigger(trigger_id, current_user)


@router.get("/notification-templates", response_model=list[TemplateResponse])
async def list_notification_templates(
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.list_templates(current_user)


@router.post("/notification-templates", response_model=TemplateResponse, status_code=201)
async def create_notification_template(
    data: TemplateCreate,
    current_user: User = Depends(require_roles("admin")),
    service: NotificationInboxService = Depends(get_inbox_service),
):
    return service.create_template(data, current_user)


__all__ = [
    "router",
    "list_notifications",
    "unread_count",
    "mark_all_read",
    "get_preferences",
    "update_preferences",
    "notification_stats",
    "cleanup_notifications",
    "mark_read",
    "delete_notification",
    "list_triggers",
    "create_trigger",
    "update_trigger",
    "delete_trigger",
    "list_notification_templates",
    "create_notification_template",
]
