from datetime import datetime, timedelta

from conftest import auth_headers

from app.models_notification import Notification, NotificationPreference, NotificationTrigger
from app.practice_time import utcnow
from app.services.notification_service import (
    DEFAULT_TRIGGERS,
    NotificationService,
    ensure_default_triggers,
    evaluate_conditions,
    render_template,
)


def add_trigger(db, practice, event_type="client_created", recipient_rules=None, condition_rules=None, **kwargs):
    trigger = NotificationTrigger(
        practice_id=practice.id,
        name=kwargs.pop("name", f"{event_type} trigger"),
        event_type=event_type,
        priority=kwargs.pop("priority", "medium"),
        condition_rules=condition_rules,
        recipient_rules=recipient_rules or {"roles": ["admin"]},
        **kwargs,
    )
    db.add(trigger)
    db.commit()
    return trigger


def add_notification(db, user, **kwargs):
    notification = Notification(
        practice_id=user.practice_id,
        user_id=user.id,
        type=kwargs.pop("type", "client_created"),
        title=kwargs.pop("title", "Heads up"),
        message=kwargs.pop("message", "Something happened"),
        **kwargs,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


# ============================================
# Rules and templates
# ============================================


def test_conditions_mapping_and_list_forms():
    data = {"priority": "urgent", "score": 18, "client": {"fullName": "Jamie Rivera"}, "tags": ["crisis"]}
    assert evaluate_conditions(None, data)
    assert evaluate_conditions({"priority": "urgent"}, data)
    assert not evaluate_conditions({"priority": "low"}, data)
    assert evaluate_conditions(
        [
            {"field": "score", "operator": "greater_than", "value": 15},
            {"field": "client.fullName", "operator": "contains", "value": "rivera"},
            {"field": "tags", "operator": "contains", "value": "crisis"},
            {"field": "priority", "operator": "in_array", "value": ["high", "urgent"]},
        ],
        data,
    )
    assert not evaluate_conditions([{"field": "score", "operator": "less_than", "value": "n/a"}], data)
    assert not evaluate_conditions([{"field": "score", "operator": "approximately", "value": 18}], data)
    assert not evaluate_conditions(["not a rule"], data)


def test_render_template_keeps_unknown_placeholders():
    rendered = render_template("{{clientName}} at {{ time }} in {{room}}", {"clientName": "Jamie", "time": "3pm"})
    assert rendered == "Jamie at 3pm in {{room}}"
    assert render_template(None, {}) is None


def test_default_triggers_are_idempotent(db, practice):
    assert ensure_default_triggers(db, practice.id) == len(DEFAULT_TRIGGERS)
    assert ensure_default_triggers(db, practice.id) == 0


# ============================================
# Event processing
# ============================================


def test_event_notifies_roles_but_not_the_actor(db, practice, admin, supervisor, therapist):
    add_trigger(db, practice, recipient_rules={"roles": ["admin", "supervisor"]})

    created = NotificationService(db).process_event(
        practice.id, "client_created", {"id": 7, "clientName": "Jamie"}, "client", actor_id=admin.id
    )
    assert [n.user_id for n in created] == [supervisor.id]
    assert created[0].grouping_key == "client_created_7"
    assert created[0].expires_at > utcnow() + timedelta(days=29)


def test_specific_users_and_conditions(db, practice, admin, therapist, other_therapist):
    add_trigger(
        db,
        practice,
        event_type="session_cancelled",
        recipient_rules={"specificUsers": [other_therapist.id]},
        condition_rules={"sessionType": "intake"},
    )
    service = NotificationService(db)
    assert service.process_event(practice.id, "session_cancelled", {"id": 1, "sessionType": "individual"}) == []
    created = service.process_event(practice.id, "session_cancelled", {"id": 2, "sessionType": "intake"})
    assert [n.user_id for n in created] == [other_therapist.id]


def test_inactive_triggers_and_inactive_users_are_skipped(db, practice, admin, therapist):
    add_trigger(db, practice, is_active=False)
    therapist.is_active = False
    db.commit()
    add_trigger(db, practice, event_type="task_assigned", recipient_rules={"assignedTherapist": True})

    service = NotificationService(db)
    assert service.process_event(practice.id, "client_created", {"id": 1}) == []
    assert service.process_event(practice.id, "task_assigned", {"id": 1, "assignedToId": therapist.id}) == []


def test_users_from_other_practices_never_receive(db, practice, admin, other_practice_admin):
    add_trigger(db, practice, recipient_rules={"specificUsers": [other_practice_admin.id, admin.id]})
    created = NotificationService(db).process_event(practice.id, "client_created", {"id": 1})
    assert [n.user_id for n in created] == [admin.id]


def test_muted_in_app_preference_suppresses(db, practice, admin):
    add_trigger(db, practice)
    db.add(NotificationPreference(user_id=admin.id, trigger_type="client_created", in_app_enabled=False))
    db.commit()
    assert NotificationService(db).process_event(practice.id, "client_created", {"id": 1}) == []


def test_processing_failure_is_swallowed(db, practice, admin, monkeypatch):
    add_trigger(db, practice)

    def boom(*args, **kwargs):
        raise RuntimeError("recipient lookup failed")

    service = NotificationService(db)
    monkeypatch.setattr(service, "resolve_recipients", boom)
    assert service.process_event(practice.id, "client_created", {"id": 1}) == []


def test_creating_a_client_notifies_managers(api, db, practice, admin, supervisor, therapist):
    ensure_default_triggers(db, practice.id)
    api.post(
        "/api/clients",
        json={"fullName": "Morgan Lee", "assignedTherapistId": therapist.id},
        headers=auth_headers(admin),
    )
    recipients = {n.user_id: n.type for n in db.query(Notification).all()}
    assert recipients[supervisor.id] == "client_created"
    assert recipients[therapist.id] == "client_assigned"
    assert admin.id not in recipients


# ============================================
# Inbox
# ============================================


def test_inbox_lists_own_unexpired_notifications(api, db, therapist, other_therapist):
    add_notification(db, therapist, title="Mine")
    add_notification(db, therapist, title="Old", expires_at=datetime(2020, 1, 1))
    add_notification(db, other_therapist, title="Theirs")

    titles = [n["title"] for n in api.get("/api/notifications", headers=auth_headers(therapist)).json()]
    assert titles == ["Mine"]
    assert api.get("/api/notifications/unread-count", headers=auth_headers(therapist)).json() == {"count": 1}


def test_mark_read_and_mark_all(api, db, therapist):
    first = add_notification(db, therapist)
    add_notification(db, therapist)
    headers = auth_headers(therapist)

    read = api.patch(f"/api/notifications/{first.id}/read", headers=headers).json()
    assert read["isRead"] is True
    assert read["readAt"] is not None

    unread = api.get("/api/notifications", params={"unreadOnly": True}, headers=headers).json()
    assert len(unread) == 1

    assert api.post("/api/notifications/mark-all-read", headers=headers).json() == {"updated": 1}
    assert api.get("/api/notifications/unread-count", headers=headers).json() == {"count": 0}


def test_cannot_touch_someone_elses_notification(api, db, therapist, other_therapist):
    theirs = add_notification(db, other_therapist)
    headers = auth_headers(therapist)
    assert api.patch(f"/api/notifications/{theirs.id}/read", headers=headers).status_code == 404
    assert api.delete(f"/api/notifications/{theirs.id}", headers=headers).status_code == 404


def test_preferences_default_and_update(api, therapist):
    headers = auth_headers(therapist)
    defaults = api.get("/api/notifications/preferences", headers=headers).json()
    assert len(defaults) == 9
    assert all(p["inAppEnabled"] and not p["emailEnabled"] for p in defaults)

    updated = api.put(
        "/api/notifications/preferences",
        json={"preferences": [{"triggerType": "task_assigned", "inAppEnabled": False, "emailEnabled": True}]},
        headers=headers,
    ).json()
    task = next(p for p in updated if p["triggerType"] == "task_assigned")
    assert task == {"triggerType": "task_assigned", "inAppEnabled": False, "emailEnabled": True}

    bad = api.put(
        "/api/notifications/preferences",
        json={"preferences": [{"triggerType": "birthday"}]},
        headers=headers,
    )
    assert bad.status_code == 422


# ============================================
# Admin
# ============================================


def test_stats_and_cleanup_are_admin_only(api, db, admin, therapist):
    add_notification(db, therapist, priority="high")
    add_notification(db, therapist, type="task_assigned", expires_at=datetime(2020, 1, 1))

    assert api.get("/api/notifications/stats", headers=auth_headers(therapist)).status_code == 403

    stats = api.get("/api/notifications/stats", headers=auth_headers(admin)).json()
    assert stats["total"] == 2
    assert stats["byType"] == {"client_created": 1, "task_assigned": 1}
    assert stats["byPriority"] == {"high": 1, "medium": 1}

    assert api.post("/api/notifications/cleanup", headers=auth_headers(admin)).json() == {"deleted": 1}


def test_trigger_crud(api, admin_headers, therapist_headers):
    template = api.post(
        "/api/notification-templates",
        json={"name": "Intake", "type": "client_created", "subject": "New: {{clientName}}", "bodyTemplate": "Hello"},
        headers=admin_headers,
    ).json()

    payload = {
        "name": "Intake alert",
        "eventType": "client_created",
        "priority": "high",
        "recipientRules": {"roles": ["admin"]},
        "conditionRules": [{"field": "clientType", "operator": "equals", "value": "couple"}],
        "templateId": template["id"],
    }
    assert api.post("/api/notification-triggers", json=payload, headers=therapist_headers).status_code == 403

    created = api.post("/api/notification-triggers", json=payload, headers=admin_headers)
    assert created.status_code == 201
    trigger_id = created.json()["id"]

    updated = api.put(
        f"/api/notification-triggers/{trigger_id}", json={"isActive": False, "name": None}, headers=admin_headers
    ).json()
    assert updated["isActive"] is False
    assert updated["name"] == "Intake alert"

    listed = api.get("/api/notification-triggers", headers=admin_headers).json()
    assert [t["id"] for t in listed] == [trigger_id]

    assert api.delete(f"/api/notification-triggers/{trigger_id}", headers=admin_headers).status_code == 200


def test_trigger_template_must_belong_to_practice(api, admin_headers):
    payload = {"name": "Broken", "eventType": "client_created", "recipientRules": {"roles": ["admin"]}, "templateId": 999}
    assert api.post("/api/notification-triggers", json=payload, headers=admin_headers).status_code == 400


def test_trigger_rejects_unknown_event(api, admin_headers):
    payload = {"name": "Broken", "eventType": "full_moon", "recipientRules": {}}
    assert api.post("/api/notification-triggers", json=payload, headers=admin_headers).status_code == 422
