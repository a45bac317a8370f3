from datetime import datetime

from conftest import auth_headers, make_client

from app.models import Task
from app.models_notification import Notification
from app.services.notification_service import ensure_default_triggers


def test_create_task_defaults_and_names(api, admin_headers, client_record, therapist):
    response = api.post(
        "/api/tasks",
        json={"title": "Send intake packet", "clientId": client_record.id, "assignedToId": therapist.id},
        headers=admin_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["priority"] == "medium"
    assert body["clientName"] == "Jamie Rivera"
    assert body["assignedToName"] == "Terry Therapist"
    assert body["completedAt"] is None


def test_task_links_must_belong_to_the_practice(api, db, admin_headers, other_practice_admin):
    foreign_client = make_client(db, other_practice_admin.practice, None, seq=9)

    bad_assignee = api.post(
        "/api/tasks", json={"title": "Call back", "assignedToId": other_practice_admin.id}, headers=admin_headers
    )
    assert bad_assignee.status_code == 400

    bad_client = api.post(
        "/api/tasks", json={"title": "Call back", "clientId": foreign_client.id}, headers=admin_headers
    )
    assert bad_client.status_code == 400


def test_invalid_priority_is_422(api, admin_headers):
    response = api.post("/api/tasks", json={"title": "Call back", "priority": "whenever"}, headers=admin_headers)
    assert response.status_code == 422


def test_therapist_sees_tasks_assigned_to_or_created_by_them(
    api, admin_headers, therapist, other_therapist
):
    api.post("/api/tasks", json={"title": "For Terry", "assignedToId": therapist.id}, headers=admin_headers)
    api.post("/api/tasks", json={"title": "For Olive", "assignedToId": other_therapist.id}, headers=admin_headers)
    api.post("/api/tasks", json={"title": "Terry's own reminder"}, headers=auth_headers(therapist))

    titles = sorted(t["title"] for t in api.get("/api/tasks", headers=auth_headers(therapist)).json())
    assert titles == ["For Terry", "Terry's own reminder"]

    everything = api.get("/api/tasks", headers=admin_headers).json()
    assert len(everything) == 3


def test_completed_at_follows_status(api, admin_headers):
    task = api.post("/api/tasks", json={"title": "File insurance form"}, headers=admin_headers).json()

    done = api.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=admin_headers).json()
    assert done["completedAt"] is not None

    reopened = api.put(f"/api/tasks/{task['id']}", json={"status": "in_progress"}, headers=admin_headers).json()
    assert reopened["status"] == "in_progress"
    assert reopened["completedAt"] is None


def test_update_ignores_null_title(api, admin_headers):
    task = api.post("/api/tasks", json={"title": "Original"}, headers=admin_headers).json()
    updated = api.put(f"/api/tasks/{task['id']}", json={"title": None, "priority": "high"}, headers=admin_headers)
    assert updated.json()["title"] == "Original"
    assert updated.json()["priority"] == "high"


def test_past_due_tasks_become_overdue_and_count_as_pending(api, db, practice, admin, therapist):
    db.add(
        Task(
            practice_id=practice.id,
            created_by_id=admin.id,
            assigned_to_id=therapist.id,
            title="Late treatment plan",
            status="pending",
            priority="high",
            due_date=datetime(2020, 1, 1, 12, 0),
        )
    )
    db.add(
        Task(
            practice_id=practice.id,
            created_by_id=admin.id,
            assigned_to_id=therapist.id,
            title="Done already",
            status="completed",
            priority="low",
            due_date=datetime(2020, 1, 1, 12, 0),
        )
    )
    db.commit()

    headers = auth_headers(therapist)
    assert api.get("/api/tasks/pending/count", headers=headers).json() == {"count": 1}

    open_tasks = api.get("/api/tasks", params={"includeCompleted": False}, headers=headers).json()
    assert [(t["title"], t["status"]) for t in open_tasks] == [("Late treatment plan", "overdue")]


def test_assigning_a_task_notifies_the_assignee(api, db, practice, admin_headers, therapist):
    ensure_default_triggers(db, practice.id)
    task = api.post(
        "/api/tasks", json={"title": "Review safety plan", "assignedToId": therapist.id}, headers=admin_headers
    ).json()

    notification = db.query(Notification).filter(Notification.user_id == therapist.id).one()
    assert notification.type == "task_assigned"
    assert notification.title == "New task: Review safety plan"
    assert notification.action_url == f"/tasks?task={task['id']}"


def test_urgent_task_escalates_to_supervisor(api, db, practice, admin_headers, therapist, supervisor):
    therapist.supervisor_id = supervisor.id
    db.commit()
    ensure_default_triggers(db, practice.id)

    api.post(
        "/api/tasks",
        json={"title": "Crisis follow-up", "assignedToId": therapist.id, "priority": "urgent"},
        headers=admin_headers,
    )
    escalation = db.query(Notification).filter(Notification.user_id == supervisor.id).one()
    assert escalation.priority == "urgent"
    assert "Terry Therapist" in escalation.title


def test_comments_carry_author_name(api, admin_headers):
    task = api.post("/api/tasks", json={"title": "Coordinate with school"}, headers=admin_headers).json()
    created = api.post(f"/api/tasks/{task['id']}/comments", json={"content": "Left a voicemail"}, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["authorName"] == "Ada Admin"

    comments = api.get(f"/api/tasks/{task['id']}/comments", headers=admin_headers).json()
    assert [c["content"] for c in comments] == ["Left a voicemail"]


def test_client_tasks_hidden_from_unassigned_therapist(api, admin_headers, client_record, other_therapist):
    api.post("/api/tasks", json={"title": "Collect ROI", "clientId": client_record.id}, headers=admin_headers)

    assert len(api.get(f"/api/clients/{client_record.id}/tasks", headers=admin_headers).json()) == 1
    response = api.get(f"/api/clients/{client_record.id}/tasks", headers=auth_headers(other_therapist))
    assert response.status_code == 404


def test_delete_task(api, admin_headers):
    task = api.post("/api/tasks", json={"title": "Temporary"}, headers=admin_headers).json()
    assert api.delete(f"/api/tasks/{task['id']}", headers=admin_headers).status_code == 200
    assert api.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=admin_headers).status_code == 404


def test_task_by_id_is_limited_to_assignee_and_creator(api, admin_headers, therapist, other_therapist):
    task = api.post(
        "/api/tasks", json={"title": "Call insurer", "assignedToId": therapist.id}, headers=admin_headers
    ).json()
    outsider = auth_headers(other_therapist)

    assert api.put(f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=outsider).status_code == 404
    assert api.get(f"/api/tasks/{task['id']}/comments", headers=outsider).status_code == 404
    assert api.delete(f"/api/tasks/{task['id']}", headers=outsider).status_code == 404

    updated = api.put(f"/api/tasks/{task['id']}", json={"status": "in_progress"}, headers=auth_headers(therapist))
    assert updated.json()["status"] == "in_progress"
