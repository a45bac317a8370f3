"""
Event-driven Notification Service
Matches workflow events against practice triggers, resolves who should hear about them,
renders the trigger's template and stores in-app notifications (plus best-effort email).
"""

import logging
import re
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import User
from ..models_notification import (
    Notification,
    NotificationPreference,
    NotificationTemplate,
    NotificationTrigger,
)
from ..practice_time import utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TTL_DAYS = 30
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

# ============================================================================
# RULE EVALUATION
# ============================================================================


def get_field_value(data: dict, path: str) -> Any:
    """Resolve a dot-notation path ("client.fullName") against nested dicts"""
    current: Any = data
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


def _compare(actual: Any, operator: str, expected: Any) -> bool:
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "contains":
        if actual is None:
            return False
        if isinstance(actual, (list, tuple)):
            return expected in actual
        return str(expected).lower() in str(actual).lower()
    if operator in ("greater_than", "less_than"):
        try:
            left, right = float(actual), float(expected)
        except (TypeError, ValueError):
            return False
        return left > right if operator == "greater_than" else left < right
    if operator == "in_array":
        return isinstance(expected, (list, tuple)) and actual in expected

    logger.warning(f"⚠️ Unknown condition operator '{operator}' - condition treated as not met")
    return False


def evaluate_conditions(rules: Any, data: dict) -> bool:
    """
    All conditions must hold (AND).

    rules may be a {field: value} mapping of equalities or a list of
    {field, operator, value} dicts. Empty rules always match.
    """
    if not rules:
        return True

    if isinstance(rules, dict):
        return all(get_field_value(data, field) == value for field, value in rules.items())

    if isinstance(rules, list):
        for rule in rules:
            if not isinstance(rule, dict) or "field" not in rule:
                return False
            actual = get_field_value(data, rule["field"])
            if not _compare(actual, rule.get("operator", "equals"), rule.get("value")):
                return False
        return True

    return False


def render_template(template: Optional[str], data: dict) -> Optional[str]:
    """Replace {{key}} placeholders; unknown keys keep their placeholder"""
    if template is None:
        return None

    def replace(match: re.Match) -> str:
        value = get_field_value(data, match.group(1))
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


# ============================================================================
# DEFAULT TRIGGERS
# ============================================================================

DEFAULT_TRIGGERS: list[dict] = [
    {
        "name": "New client added",
        "event_type": "client_created",
        "priority": "medium",
        "recipient_rules": {"roles": ["admin", "supervisor"]},
        "template": {
            "subject": "New client: {{clientName}}",
            "body": "{{clientName}} ({{clientCode}}) was added to the practice.",
            "action_url": "/clients/{{id}}",
            "action_label": "View client",
        },
    },
    {
        "name": "Client assigned to therapist",
        "event_type": "client_assigned",
        "priority": "high",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "Client assigned to you",
            "body": "{{clientName}} ({{clientCode}}) has been assigned to you.",
            "action_url": "/clients/{{id}}",
            "action_label": "View client",
        },
    },
    {
        "name": "Session scheduled",
        "event_type": "session_scheduled",
        "priority": "medium",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "Session scheduled with {{clientName}}",
            "body": "A {{sessionType}} session with {{clientName}} is scheduled for {{sessionDateLocal}}.",
            "action_url": "/scheduling?session={{id}}",
            "action_label": "Open calendar",
        },
    },
    {
        "name": "Session cancelled",
        "event_type": "session_cancelled",
        "priority": "medium",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "Session cancelled: {{clientName}}",
            "body": "The session with {{clientName}} on {{sessionDateLocal}} was cancelled.",
            "action_url": "/scheduling?session={{id}}",
            "action_label": "Open calendar",
        },
    },
    {
        "name": "Task assigned",
        "event_type": "task_assigned",
        "priority": "medium",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "New task: {{title}}",
            "body": "You have been assigned \"{{title}}\" ({{priority}} priority).",
            "action_url": "/tasks?task={{id}}",
            "action_label": "View task",
        },
    },
    {
        "name": "Urgent task escalation",
        "event_type": "task_assigned",
        "priority": "urgent",
        "condition_rules": [{"field": "priority", "operator": "equals", "value": "urgent"}],
        "recipient_rules": {"supervisorOfTherapist": True},
        "template": {
            "subject": "Urgent task assigned to {{assigneeName}}",
            "body": "\"{{title}}\" was assigned to {{assigneeName}} with urgent priority.",
            "action_url": "/tasks?task={{id}}",
            "action_label": "View task",
        },
    },
    {
        "name": "Assessment submitted by client",
        "event_type": "assessment_submitted",
        "priority": "high",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "{{clientName}} submitted {{templateName}}",
            "body": "{{clientName}} finished their part of {{templateName}}. It is ready for your review.",
            "action_url": "/assessments/{{id}}/complete",
            "action_label": "Review assessment",
        },
    },
    {
        "name": "Assessment completed",
        "event_type": "assessment_completed",
        "priority": "low",
        "recipient_rules": {"supervisorOfTherapist": True},
        "template": {
            "subject": "Assessment completed for {{clientName}}",
            "body": "{{templateName}} for {{clientName}} was completed with a total score of {{totalScore}}.",
            "action_url": "/assessments/{{id}}/report",
            "action_label": "Open report",
        },
    },
    {
        "name": "Session note finalized",
        "event_type": "session_note_finalized",
        "priority": "low",
        "recipient_rules": {"supervisorOfTherapist": True},
        "template": {
            "subject": "Session note finalized for {{clientName}}",
            "body": "{{therapistName}} finalized the session note for {{clientName}}.",
            "action_url": "/clients/{{clientId}}?tab=session-notes",
            "action_label": "Read note",
        },
    },
    {
        "name": "Client uploaded a document",
        "event_type": "document_uploaded",
        "priority": "medium",
        "recipient_rules": {"assignedTherapist": True},
        "template": {
            "subject": "{{clientName}} uploaded {{fileName}}",
            "body": "{{clientName}} uploaded \"{{fileName}}\" through the client portal.",
            "action_url": "/clients/{{clientId}}?tab=documents",
            "action_label": "View documents",
        },
    },
]


def ensure_default_triggers(db: Session, practice_id: int) -> int:
    """Create the default triggers (and their templates) a practice is missing. Returns number created."""
    existing = {
        (t.event_type, t.name)
        for t in db.query(NotificationTrigger).filter(NotificationTrigger.practice_id == practice_id).all()
    }
    created = 0
    for default in DEFAULT_TRIGGERS:
        if (default["event_type"], default["name"]) in existing:
            continue
        template = NotificationTemplate(
            practice_id=practice_id,
            name=default["name"],
            type=default["event_type"],
            subject=default["template"]["subject"],
            body_template=default["template"]["body"],
            action_url_template=default["template"].get("action_url"),
            action_label=default["template"].get("action_label"),
        )
        db.add(template)
        db.flush()
        db.add(
            NotificationTrigger(
                practice_id=practice_id,
                name=default["name"],
                event_type=default["event_type"],
                priority=default["priority"],
                condition_rules=default.get("condition_rules"),
                recipient_rules=default["recipient_rules"],
                template_id=template.id,
            )
        )
        created += 1
    db.commit()
    if created:
        logger.info(f"✅ Created {created} default notification triggers for practice {practice_id}")
    return created


# ============================================================================
# SERVICE
# ============================================================================


class NotificationService:
    """Turns workflow events into notifications"""

    def __init__(self, db: Session):
        self.db = db

    def process_event(
        self,
        practice_id: int,
        event_type: str,
        entity_data: dict,
        entity_type: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> list[Notification]:
        """
        Evaluate every active trigger for the event and notify the resolved recipients.
        Never raises: a failed notification must not fail the workflow that emitted it.
        """
        try:
            triggers = (
                self.db.query(NotificationTrigger)
                .filter(
                    NotificationTrigger.practice_id == practice_id,
                    NotificationTrigger.event_type == event_type,
                    NotificationTrigger.is_active.is_(True),
                )
                .all()
            )
            created: list[Notification] = []
            for trigger in triggers:
                if not evaluate_conditions(trigger.condition_rules, entity_data):
                    continue
                recipients = self.resolve_recipients(practice_id, trigger.recipient_rules or {}, entity_data)
                recipients = [user for user in recipients if user.id != actor_id]
                for user in recipients:
                    notification = self._notify(practice_id, user, trigger, event_type, entity_data, entity_type)
                    if notification:
                        created.append(notification)

            self.db.commit()
            if created:
                logger.info(f"🔔 {event_type}: created {len(created)} notification(s)")
            return created
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to process notification event {event_type}: {e}")
            return []

    def resolve_recipients(self, practice_id: int, rules: dict, entity_data: dict) -> list[User]:
        """Resolve recipient rules to distinct active users of the practice"""
        recipients: dict[int, User] = {}

        def add(users):
            for user in users:
                if user and user.is_active and user.practice_id == practice_id:
                    recipients.setdefault(user.id, user)

        roles = rules.get("roles") or []
        if roles:
            add(
                self.db.query(User)
                .filter(User.practice_id == practice_id, User.role.in_(roles), User.is_active.is_(True))
                .all()
            )

        specific = rules.get("specificUsers") or []
        if specific:
            add(self.db.query(User).filter(User.id.in_(specific)).all())

        therapist_id = entity_data.get("assignedToId") or entity_data.get("therapistId")
        therapist = self.db.query(User).filter(User.id == therapist_id).first() if therapist_id else None

        if rules.get("assignedTherapist") and therapist:
            add([therapist])

        if rules.get("supervisorOfTherapist") and therapist and therapist.supervisor_id:
            add(self.db.query(User).filter(User.id == therapist.supervisor_id).all())

        return list(recipients.values())

    def _preference_for(self, user_id: int, event_type: str) -> Optional[NotificationPreference]:
        return (
            self.db.query(NotificationPreference)
            .filter(NotificationPreference.user_id == user_id, NotificationPreference.trigger_type == event_type)
            .first()
        )

    def _notify(
        self,
        practice_id: int,
        user: User,
        trigger: NotificationTrigger,
        event_type: str,
        entity_data: dict,
        entity_type: Optional[str],
    ) -> Optional[Notification]:
        preference = self._preference_for(user.id, event_type)
        if preference and not preference.in_app_enabled:
            logger.debug(f"ℹ️ User {user.id} muted in-app {event_type} notifications")
            return None

        template = trigger.template
        title = render_template(template.subject if template else trigger.name, entity_data)
        message = render_template(template.body_template if template else trigger.name, entity_data)
        action_url = render_template(template.action_url_template, entity_data) if template else None

        entity_id = entity_data.get("id")
        notification = Notification(
            practice_id=practice_id,
            user_id=user.id,
            type=event_type,
            title=title,
            message=message,
            data=entity_data,
            priority=trigger.priority,
            action_url=action_url,
            action_label=template.action_label if template else None,
            grouping_key=f"{event_type}_{entity_id}",
            related_entity_type=entity_type,
            related_entity_id=entity_id,
            expires_at=utcnow() + timedelta(days=NOTIFICATION_TTL_DAYS),
        )
        self.db.add(notification)

        if preference and preference.email_enabled:
            from ..email_service import send_notification_email

            try:
                send_notification_email(user.email, title, message, action_url)
            except Exception as e:
                logger.warning(f"⚠️ Notification email to user {user.id} not sent: {e}")

        return notification
