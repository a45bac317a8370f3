"""
Notification inbox service

Notifications are produced by services.notification_service when workflow
events fire; this module serves the per-user inbox, preferences and the
admin-managed triggers and templates.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from ...models import User
from ...models_notification import (
    NOTIFICATION_EVENTS,
    Notification,
    NotificationPreference,
    NotificationTemplate,
    NotificationTrigger,
)
from ...practice_time import utcnow
from .schemas import (
    PreferenceItem,
    TemplateCreate,
    TemplateResponse,
    TriggerCreate,
    TriggerResponse,
    TriggerUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


class NotificationInboxService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def _inbox(self, user: User) -> Query:
        """User's notifications that have not expired"""
        return self.db.query(Notification).filter(
            Notification.user_id == user.id,
            or_(Notification.expires_at.is_(None), Notification.expires_at > utcnow()),
        )

    def list_notifications(
        self, user: User, unread_only: bool = False, limit: int = DEFAULT_LIST_LIMIT
    ) -> list[Notification]:
        query = self._inbox(user)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user: User) -> dict:
        return {"count": self._inbox(user).filter(Notification.is_read.is_(False)).count()}

    def mark_read(self, notification_id: int, user: User) -> Notification:
        notification = self._get_own(notification_id, user)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: User) -> dict:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
            .update({Notification.is_read: True, Notification.read_at: utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return {"updated": updated}

    def delete_notification(self, notification_id: int, user: User) -> dict:
        notification = self._get_own(notification_id, user)
        self.db.delete(notification)
        self.db.commit()
        return {"message": "Notification deleted"}

    def _get_own(self, notification_id: int, user: User) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user.id)
            .first()
        )
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_preferences(self, user: User) -> list[PreferenceItem]:
        """One entry per event type; types never saved report the defaults"""
        stored = {
            p.trigger_type: p
            for p in self.db.query(NotificationPreference).filter(NotificationPreference.user_id == user.id).all()
        }
        items = []
        for event_type in NOTIFICATION_EVENTS:
            preference = stored.get(event_type)
            items.append(
                PreferenceItem(
                    trigger_type=event_type,
                    in_app_enabled=preference.in_app_enabled if preference else True,
                    email_enabled=preference.email_enabled if preference else False,
                )
            )
        return items

    def update_preferences(self, items: list[PreferenceItem], user: User) -> list[PreferenceItem]:
        for item in items:
            preference = (
                self.db.query(NotificationPreference)
                .filter(
                    NotificationPreference.user_id == user.id,
                    NotificationPreference.trigger_type == item.trigger_type,
                )
                .first()
            )
            if preference is None:
                preference = NotificationPreference(user_id=user.id, trigger_type=item.trigger_type)
                self.db.add(preference)
            preference.in_app_enabled = item.in_app_enabled
            preference.email_enabled = item.email_enabled
        self.db.commit()
        logger.info(f"✅ Updated {len(items)} notification preferences for user {user.id}")
        return self.get_preferences(user)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def get_stats(self, user: User) -> dict:
        base = self.db.query(Notification).filter(Notification.practice_id == user.practice_id)
        by_type = dict(
            base.with_entities(Notification.type, func.count(Notification.id)).group_by(Notification.type).all()
        )
        by_priority = dict(
            base.with_entities(Notification.priority, func.count(Notification.id))
            .group_by(Notification.priority)
            .all()
        )
        return {
            "total": base.count(),
            "unread": base.filter(Notification.is_read.is_(False)).count(),
            "by_type": by_type,
            "by_priority": by_priority,
        }

    def cleanup_expired(self, user: User) -> dict:
        deleted = (
            self.db.query(Notification)
            .filter(
                Notification.practice_id == user.practice_id,
                Notification.expires_at.isnot(None),
                Notification.expires_at < utcnow(),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"🗑️ Removed {deleted} expired notifications for practice {user.practice_id}")
        return {"deleted": deleted}

    def list_triggers(self, user: User) -> list[TriggerResponse]:
        triggers = (
            self.db.query(NotificationTrigger)
            .filter(NotificationTrigger.practice_id == user.practice_id)
            .order_by(NotificationTrigger.event_type.asc(), NotificationTrigger.id.asc())
            .all()
        )
        return [TriggerResponse.model_validate(t) for t in triggers]

    def create_trigger(self, data: TriggerCreate, user: User) -> TriggerResponse:
        self._check_template(data.template_id, user)
        trigger = NotificationTrigger(practice_id=user.practice_id, **data.model_dump())
        self.db.add(trigger)
        self.db.commit()
        self.db.refresh(trigger)
        logger.info(f"🔔 Created notification trigger {trigger.id} for {trigger.event_type}")
        return TriggerResponse.model_validate(trigger)

    def update_trigger(self, trigger_id: int, data: TriggerUpdate, user: User) -> TriggerResponse:
        trigger = self._get_trigger(trigger_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "template_id" in updates:
            self._check_template(updates["template_id"], user)
        for key, value in updates.items():
            if key in ("name", "event_type", "is_active", "priority", "recipient_rules") and value is None:
                continue
            setattr(trigger, key, value)
        self.db.commit()
        self.db.refresh(trigger)
        return TriggerResponse.model_validate(trigger)

    def delete_trigger(self, trigger_id: int, user: User) -> dict:
        trigger = self._get_trigger(trigger_id, user)
        self.db.delete(trigger)
        self.db.commit()
        return {"message": "Notification trigger deleted"}

    def list_templates(self, user: User) -> list[TemplateResponse]:
        templates = (
            self.db.query(NotificationTemplate)
            .filter(NotificationTemplate.practice_id == user.practice_id)
            .order_by(NotificationTemplate.name.asc())
            .all()
        )
        return [TemplateResponse.model_validate(t) for t in templates]

    def create_template(self, data: TemplateCreate, user: User) -> TemplateResponse:
        template = NotificationTemplate(practice_id=user.practice_id, **data.model_dump())
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return TemplateResponse.model_validate(template)

    def _get_trigger(self, trigger_id: int, user: User) -> NotificationTrigger:
        trigger = (
            self.db.query(NotificationTrigger)
            .filter(NotificationTrigger.id == trigger_id, NotificationTrigger.practice_id == user.practice_id)
            .first()
        )
        if not trigger:
            raise HTTPException(status_code=404, detail="Notification trigger not found")
        return trigger

    def _check_template(self, template_id: Optional[int], user: User) -> None:
        if template_id is None:
            return
        exists = (
            self.db.query(NotificationTemplate.id)
            .filter(NotificationTemplate.id == template_id, NotificationTemplate.practice_id == user.practice_id)
            .first()
        )
        if not exists:
            raise HTTPException(status_code=400, detail="Notification template not found in this practice")
