from datetime import datetime

import pytest
from conftest import auth_headers

from app.models import Room, TherapySession
from app.models_billing import Service, SessionBilling
from app.models_session_note import SessionNote
from app.domain.scheduling.service import sessions_overlap


@pytest.fixture
def service_90834(db, practice):
    service = Service(
        practice_id=practice.id,
        service_code="90834",
        service_name="Individual Psychotherapy 45 min",
        duration=45,
        base_rate=150.0,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def room(db, practice):
    room = Room(practice_id=practice.id, room_number="101", room_name="Room A")
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def book(api, headers, client_record, therapist, when, **extra):
    payload = {"clientId": client_record.id, "therapistId": therapist.id, "sessionDate": when}
    payload.update(extra)
    return api.post("/api/sessions", json=payload, headers=headers)


def test_overlap_is_half_open():
    start = datetime(2030, 1, 15, 15, 0)
    assert sessions_overlap(start, 50, datetime(2030, 1, 15, 15, 30), 50)
    assert not sessions_overlap(start, 60, datetime(2030, 1, 15, 16, 0), 60)
    assert not sessions_overlap(datetime(2030, 1, 15, 16, 0), 60, start, 60)


def test_create_session_uses_service_duration_and_rate(api, db, admin_headers, client_record, therapist, service_90834):
    response = book(
        api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z", serviceId=service_90834.id
    )
    assert response.status_code == 201
    body = response.json()
    assert body["sessionDate"] == "2030-01-15T15:00:00"
    assert body["duration"] == 45
    assert body["calculatedRate"] == 150.0
    assert body["serviceName"] == "Individual Psychotherapy 45 min"
    assert body["clientName"] == "Jamie Rivera"
    assert body["status"] == "scheduled"

    db.refresh(client_record)
    assert client_record.next_appointment_date == datetime(2030, 1, 15, 15, 0)


def test_session_offset_is_normalized_to_utc(api, admin_headers, client_record, therapist):
    response = book(api, admin_headers, client_record, therapist, "2030-01-15T10:00:00-05:00")
    assert response.json()["sessionDate"] == "2030-01-15T15:00:00"
    assert response.json()["duration"] == 50


def test_therapist_conflict_is_409_with_details(api, admin_headers, client_record, therapist):
    assert book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z").status_code == 201

    clash = book(api, admin_headers, client_record, therapist, "2030-01-15T15:30:00Z")
    assert clash.status_code == 409
    detail = clash.json()["detail"]
    assert detail["conflicts"][0]["conflictType"] == "therapist"

    back_to_back = book(api, admin_headers, client_record, therapist, "2030-01-15T15:50:00Z")
    assert back_to_back.status_code == 201


def test_allow_conflicts_overrides_check(api, admin_headers, client_record, therapist):
    book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z")
    forced = book(api, admin_headers, client_record, therapist, "2030-01-15T15:10:00Z", allowConflicts=True)
    assert forced.status_code == 201


def test_room_conflict_between_different_therapists(
    api, db, practice, admin_headers, client_record, therapist, other_therapist, room
):
    book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z", roomId=room.id)

    response = api.post(
        "/api/sessions/check-conflicts",
        json={
            "therapistId": other_therapist.id,
            "roomId": room.id,
            "sessionDate": "2030-01-15T15:20:00Z",
            "duration": 50,
        },
        headers=admin_headers,
    )
    body = response.json()
    assert body["hasConflicts"] is True
    assert [c["conflictType"] for c in body["conflicts"]] == ["room"]


def test_cancelled_sessions_do_not_conflict(api, admin_headers, client_record, therapist):
    first = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z").json()
    cancel = api.put(f"/api/sessions/{first['id']}", json={"status": "cancelled"}, headers=admin_headers)
    assert cancel.status_code == 200

    again = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z")
    assert again.status_code == 201


def test_list_sessions_by_practice_local_day(api, admin_headers, client_record, therapist):
    # Jan 15 10:00 and 22:00 in New York; 01:00 on Jan 16
    for when in ("2030-01-15T15:00:00Z", "2030-01-16T03:00:00Z", "2030-01-16T06:00:00Z"):
        assert book(api, admin_headers, client_record, therapist, when).status_code == 201

    day = api.get("/api/sessions", params={"date": "2030-01-15"}, headers=admin_headers).json()
    assert [s["sessionDate"] for s in day] == ["2030-01-15T15:00:00", "2030-01-16T03:00:00"]

    bad = api.get("/api/sessions", params={"date": "15/01/2030"}, headers=admin_headers)
    assert bad.status_code == 400


def test_completing_a_session_creates_billing_once(
    api, db, admin_headers, client_record, therapist, service_90834
):
    session = book(
        api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z", serviceId=service_90834.id
    ).json()

    done = api.put(f"/api/sessions/{session['id']}", json={"status": "completed"}, headers=admin_headers)
    assert done.status_code == 200

    billing = db.query(SessionBilling).filter(SessionBilling.session_id == session["id"]).one()
    assert billing.service_code == "90834"
    assert billing.total_amount == 150.0
    assert billing.payment_status == "pending"

    db.refresh(client_record)
    assert client_record.last_session_date == datetime(2030, 1, 15, 15, 0)

    api.put(f"/api/sessions/{session['id']}", json={"notes": "Late start"}, headers=admin_headers)
    assert db.query(SessionBilling).filter(SessionBilling.session_id == session["id"]).count() == 1


def test_completed_session_without_service_is_not_billed(api, db, admin_headers, client_record, therapist):
    session = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z").json()
    api.put(f"/api/sessions/{session['id']}", json={"status": "completed"}, headers=admin_headers)
    assert db.query(SessionBilling).count() == 0


def test_session_with_finalized_note_cannot_be_deleted(api, db, admin_headers, client_record, therapist):
    session = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z").json()
    db.add(
        SessionNote(
            practice_id=client_record.practice_id,
            session_id=session["id"],
            client_id=client_record.id,
            therapist_id=therapist.id,
            date=datetime(2030, 1, 15, 15, 0),
            final_content="Final note",
            is_draft=False,
            is_finalized=True,
        )
    )
    db.commit()

    response = api.delete(f"/api/sessions/{session['id']}", headers=admin_headers)
    assert response.status_code == 409


def test_delete_session_clears_next_appointment(api, db, admin_headers, client_record, therapist):
    session = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z").json()
    assert api.delete(f"/api/sessions/{session['id']}", headers=admin_headers).status_code == 200
    db.refresh(client_record)
    assert client_record.next_appointment_date is None


def test_overdue_lists_past_scheduled_sessions(api, db, practice, client_record, therapist):
    db.add(
        TherapySession(
            practice_id=practice.id,
            client_id=client_record.id,
            therapist_id=therapist.id,
            session_date=datetime(2020, 3, 2, 15, 0),
            duration=50,
            status="scheduled",
        )
    )
    db.commit()

    overdue = api.get("/api/sessions/overdue", headers=auth_headers(therapist)).json()
    assert len(overdue) == 1
    assert overdue[0]["daysOverdue"] > 365


def test_client_sessions_newest_first(api, admin_headers, client_record, therapist):
    book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z")
    book(api, admin_headers, client_record, therapist, "2030-02-15T15:00:00Z")
    sessions = api.get(f"/api/clients/{client_record.id}/sessions", headers=admin_headers).json()
    assert [s["sessionDate"][:10] for s in sessions] == ["2030-02-15", "2030-01-15"]


def test_rooms_are_admin_managed_and_unique(api, admin_headers, therapist):
    created = api.post("/api/rooms", json={"roomNumber": "201", "roomName": "Garden Room"}, headers=admin_headers)
    assert created.status_code == 201

    duplicate = api.post("/api/rooms", json={"roomNumber": "201", "roomName": "Other"}, headers=admin_headers)
    assert duplicate.status_code == 409

    therapist_attempt = api.post(
        "/api/rooms", json={"roomNumber": "202", "roomName": "Nope"}, headers=auth_headers(therapist)
    )
    assert therapist_attempt.status_code == 403

    room_id = created.json()["id"]
    assert api.delete(f"/api/rooms/{room_id}", headers=admin_headers).status_code == 200


def test_inactive_room_cannot_be_booked(api, db, admin_headers, client_record, therapist, room):
    room.is_active = False
    db.commit()
    response = book(api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z", roomId=room.id)
    assert response.status_code == 400


def test_sessions_follow_the_therapist_caseload(api, admin_headers, client_record, therapist, other_therapist):
    session = book(api, admin_headers, client_record, therapist, "2030-02-04T15:00:00Z").json()
    outsider = auth_headers(other_therapist)

    assert api.get("/api/sessions", headers=outsider).json() == []
    assert api.get(f"/api/sessions/{session['id']}", headers=outsider).status_code == 404
    assert api.put(f"/api/sessions/{session['id']}", json={"notes": "x"}, headers=outsider).status_code == 404
    assert api.delete(f"/api/sessions/{session['id']}", headers=outsider).status_code == 404
    assert book(api, outsider, client_record, other_therapist, "2030-02-05T15:00:00Z").status_code == 400

    own = api.get("/api/sessions", headers=auth_headers(therapist)).json()
    assert [s["id"] for s in own] == [session["id"]]
    assert len(api.get("/api/sessions", headers=admin_headers).json()) == 1


def test_therapist_sees_sessions_they_run_for_other_caseloads(api, admin_headers, client_record, other_therapist):
    covering = book(api, admin_headers, client_record, other_therapist, "2030-02-06T15:00:00Z").json()
    headers = auth_headers(other_therapist)
    assert [s["id"] for s in api.get("/api/sessions", headers=headers).json()] == [covering["id"]]
    assert api.get(f"/api/sessions/{covering['id']}", headers=headers).status_code == 200


def test_repeating_a_session_update_changes_nothing(api, db, admin_headers, client_record, therapist, service_90834):
    session = book(
        api, admin_headers, client_record, therapist, "2030-01-15T15:00:00Z", serviceId=service_90834.id
    ).json()
    payload = {"status": "completed", "sessionDate": "2030-01-15T16:00:00Z", "notes": "Moved an hour later"}

    first = api.put(f"/api/sessions/{session['id']}", json=payload, headers=admin_headers)
    row = db.get(TherapySession, session["id"])
    db.refresh(row)
    stored = (row.status, row.session_date, row.notes, row.updated_at)

    second = api.put(f"/api/sessions/{session['id']}", json=payload, headers=admin_headers)
    db.refresh(row)

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert (row.status, row.session_date, row.notes, row.updated_at) == stored
    assert db.query(SessionBilling).filter(SessionBilling.session_id == session["id"]).count() == 1
