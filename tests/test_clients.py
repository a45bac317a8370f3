from conftest import auth_headers, make_client

from app.models import Client
from app.models_audit import AuditLog
from app.models_notification import Notification
from app.practice_time import utcnow
from app.security_utils import PORTAL_ACTIVATION_SALT, verify_timed_token
from app.services.notification_service import ensure_default_triggers


def test_create_client_assigns_sequential_code(api, admin_headers, therapist):
    year = utcnow().year
    first = api.post(
        "/api/clients",
        json={"fullName": "Morgan Lee", "email": "Morgan@Example.com", "assignedTherapistId": therapist.id},
        headers=admin_headers,
    )
    assert first.status_code == 201
    body = first.json()
    assert body["clientId"] == f"CL-{year}-0001"
    assert body["email"] == "morgan@example.com"
    assert body["therapistName"] == "Terry Therapist"
    assert body["status"] == "pending"
    assert body["stage"] == "intake"

    second = api.post("/api/clients", json={"fullName": "Riley Chen"}, headers=admin_headers)
    assert second.json()["clientId"] == f"CL-{year}-0002"


def test_create_client_rejects_unknown_therapist(api, admin_headers, other_practice_admin):
    response = api.post(
        "/api/clients",
        json={"fullName": "Morgan Lee", "assignedTherapistId": other_practice_admin.id},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_create_client_validates_phone_and_gender(api, admin_headers):
    response = api.post(
        "/api/clients",
        json={"fullName": "Morgan Lee", "phone": "(555) 123-4567", "gender": "non_binary"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["phone"] == "+15551234567"

    bad = api.post("/api/clients", json={"fullName": "Morgan Lee", "gender": "robot"}, headers=admin_headers)
    assert bad.status_code == 422


def test_therapist_only_sees_assigned_clients(api, db, practice, therapist, other_therapist):
    mine = make_client(db, practice, therapist, seq=1, full_name="Assigned Client")
    make_client(db, practice, other_therapist, seq=2, full_name="Someone Else's Client")

    response = api.get("/api/clients", headers=auth_headers(therapist))
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert [c["id"] for c in body["clients"]] == [mine.id]


def test_other_client_is_404_for_therapist(api, db, practice, therapist, other_therapist):
    theirs = make_client(db, practice, other_therapist, seq=2)
    response = api.get(f"/api/clients/{theirs.id}", headers=auth_headers(therapist))
    assert response.status_code == 404


def test_clients_are_isolated_between_practices(api, client_record, other_practice_admin):
    response = api.get(f"/api/clients/{client_record.id}", headers=auth_headers(other_practice_admin))
    assert response.status_code == 404
    listing = api.get("/api/clients", headers=auth_headers(other_practice_admin))
    assert listing.json()["total"] == 0


def test_viewing_a_client_is_audited(api, db, admin_headers, client_record):
    response = api.get(f"/api/clients/{client_record.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["sessionCount"] == 0

    entry = db.query(AuditLog).filter(AuditLog.action == "view_client").one()
    assert entry.client_id == client_record.id
    assert entry.hipaa_relevant is True


def test_list_filters_search_and_pagination(api, db, practice, therapist, admin_headers):
    for seq, name in enumerate(["Alex Stone", "Alexis Park", "Blake Reed"], start=1):
        make_client(db, practice, therapist, seq=seq, full_name=name)

    response = api.get("/api/clients", params={"search": "alex", "pageSize": 1}, headers=admin_headers)
    body = response.json()
    assert body["total"] == 2
    assert body["totalPages"] == 2
    assert body["clients"][0]["fullName"] == "Alex Stone"

    desc = api.get("/api/clients", params={"sortOrder": "desc"}, headers=admin_headers)
    assert desc.json()["clients"][0]["fullName"] == "Blake Reed"


def test_update_ignores_null_for_required_fields(api, admin_headers, client_record):
    response = api.put(
        f"/api/clients/{client_record.id}",
        json={"fullName": None, "status": "inactive", "notes": "Moved out of state"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["fullName"] == "Jamie Rivera"
    assert body["status"] == "inactive"
    assert body["notes"] == "Moved out of state"


def test_stats_count_by_status_and_stage(api, db, practice, therapist, admin_headers):
    make_client(db, practice, therapist, seq=1, status="active", stage="psychotherapy")
    make_client(db, practice, therapist, seq=2, status="pending", stage="intake")
    make_client(db, practice, therapist, seq=3, status="inactive", stage="intake")

    stats = api.get("/api/clients/stats", headers=admin_headers).json()
    assert stats["totalClients"] == 3
    assert stats["activeClients"] == 1
    assert stats["newIntakes"] == 2
    assert stats["psychotherapy"] == 1


def test_duplicates_match_email_and_name_with_birth_date(api, db, practice, therapist, admin_headers):
    from datetime import date

    make_client(db, practice, therapist, seq=1, full_name="Dana Fox", email="dana@example.com")
    make_client(db, practice, therapist, seq=2, full_name="Dana R Fox", email="DANA@example.com")
    make_client(db, practice, therapist, seq=3, full_name="Kim Lo", date_of_birth=date(1990, 4, 2))
    make_client(db, practice, therapist, seq=4, full_name="kim  lo", date_of_birth=date(1990, 4, 2))

    groups = api.get("/api/clients/duplicates", headers=admin_headers).json()
    match_types = sorted(g["matchType"] for g in groups)
    assert match_types == ["email", "name_dob"]
    assert all(len(g["clients"]) == 2 for g in groups)


def test_bulk_status_only_touches_own_practice(api, db, practice, therapist, admin_headers, other_practice_admin):
    ours = make_client(db, practice, therapist, seq=1)
    theirs = make_client(db, other_practice_admin.practice, None, seq=1)

    response = api.post(
        "/api/clients/bulk/status",
        json={"clientIds": [ours.id, theirs.id], "status": "inactive"},
        headers=admin_headers,
    )
    assert response.json() == {"updated": 1}
    db.refresh(theirs)
    assert theirs.status == "active"


def test_bulk_status_rejects_unknown_status(api, admin_headers, client_record):
    response = api.post(
        "/api/clients/bulk/status",
        json={"clientIds": [client_record.id], "status": "archived"},
        headers=admin_headers,
    )
    assert response.status_code == 422


def test_bulk_reassign(api, db, admin_headers, client_record, other_therapist):
    response = api.post(
        "/api/clients/bulk/reassign",
        json={"clientIds": [client_record.id], "therapistId": other_therapist.id},
        headers=admin_headers,
    )
    assert response.json() == {"updated": 1}
    db.refresh(client_record)
    assert client_record.assigned_therapist_id == other_therapist.id


def test_delete_requires_manager(api, db, therapist, client_record, admin_headers):
    forbidden = api.delete(f"/api/clients/{client_record.id}", headers=auth_headers(therapist))
    assert forbidden.status_code == 403

    client_id = client_record.id
    deleted = api.delete(f"/api/clients/{client_id}", headers=admin_headers)
    assert deleted.status_code == 200
    db.expire_all()
    assert db.get(Client, client_id) is None


def test_export_csv(api, admin_headers, client_record):
    response = api.get("/api/clients/export", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Client ID,Full Name")
    assert "Jamie Rivera" in lines[1]


def test_portal_invite_enables_access_and_issues_activation_token(api, db, admin_headers, client_record):
    response = api.post(
        f"/api/clients/{client_record.id}/portal-invite",
        json={"portalEmail": "jamie@clients.example"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    # No email provider in tests
    assert body["emailSent"] is False

    token = body["activationUrl"].split("token=")[1]
    payload = verify_timed_token(token, PORTAL_ACTIVATION_SALT, max_age=60)
    assert payload["client_id"] == client_record.id

    db.refresh(client_record)
    assert client_record.has_portal_access is True
    assert client_record.portal_email == "jamie@clients.example"


def test_portal_invite_requires_an_email(api, admin_headers, client_record):
    response = api.post(f"/api/clients/{client_record.id}/portal-invite", headers=admin_headers)
    assert response.status_code == 400


def test_repeating_an_update_changes_nothing(api, db, practice, admin_headers, client_record, other_therapist):
    ensure_default_triggers(db, practice.id)
    payload = {"assignedTherapistId": other_therapist.id, "phone": "(555) 222-3333", "status": "active"}

    first = api.put(f"/api/clients/{client_record.id}", json=payload, headers=admin_headers)
    db.refresh(client_record)
    stored = (client_record.assigned_therapist_id, client_record.phone, client_record.status, client_record.updated_at)

    second = api.put(f"/api/clients/{client_record.id}", json=payload, headers=admin_headers)
    db.refresh(client_record)

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert (client_record.assigned_therapist_id, client_record.phone, client_record.status, client_record.updated_at) == stored
    assigned = db.query(Notification).filter(Notification.type == "client_assigned").all()
    assert [n.user_id for n in assigned] == [other_therapist.id]
