from datetime import datetime

import pytest
from conftest import auth_headers

from app.models import TherapySession
from app.models_audit import AuditLog
from app.models_notification import Notification
from app.models_session_note import SessionNote
from app.services.notification_service import ensure_default_triggers


@pytest.fixture
def therapy_session(db, practice, client_record, therapist):
    session = TherapySession(
        practice_id=practice.id,
        client_id=client_record.id,
        therapist_id=therapist.id,
        session_date=datetime(2026, 1, 16, 2, 0),
        duration=50,
        session_type="individual",
        status="completed",
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def create_note(api, headers, therapy_session, **fields):
    payload = {"sessionId": therapy_session.id, "clientId": therapy_session.client_id}
    payload.update(fields)
    return api.post("/api/session-notes", json=payload, headers=headers)


def test_create_note_defaults_from_session(api, therapist_headers, therapy_session, therapist):
    response = create_note(api, therapist_headers, therapy_session, sessionFocus="Sleep hygiene", moodBefore=4)
    assert response.status_code == 201
    body = response.json()
    assert body["therapistId"] == therapist.id
    assert body["date"] == "2026-01-16T02:00:00"
    assert body["isDraft"] is True
    assert body["isFinalized"] is False
    assert body["aiProcessingStatus"] == "idle"
    assert body["clientName"] == "Jamie Rivera"


def test_note_client_must_match_session(api, db, practice, therapist_headers, therapy_session, therapist):
    from conftest import make_client

    other = make_client(db, practice, therapist, seq=7)
    response = api.post(
        "/api/session-notes",
        json={"sessionId": therapy_session.id, "clientId": other.id},
        headers=therapist_headers,
    )
    assert response.status_code == 400


def test_ratings_are_range_checked(api, therapist_headers, therapy_session):
    assert create_note(api, therapist_headers, therapy_session, moodBefore=0).status_code == 422
    assert create_note(api, therapist_headers, therapy_session, riskSelfHarm=5).status_code == 422


def test_ai_generation_fills_generated_and_draft(api, therapist_headers, therapy_session, fake_ai):
    response = create_note(
        api,
        therapist_headers,
        therapy_session,
        sessionFocus="Panic episodes at work",
        aiEnabled=True,
        aiTemplate="cognitive_behavioral",
    )
    body = response.json()
    assert body["aiProcessingStatus"] == "completed"
    assert body["generatedContent"] == "Generated clinical draft."
    assert body["draftContent"] == "Generated clinical draft."

    prompt = fake_ai[0]
    assert "Panic episodes at work" in prompt["user"]
    # Local practice date, not the UTC date of storage
    assert "2026-01-15" in prompt["user"]
    assert "Cognitive Behavioral" in prompt["system"]


def test_ai_requested_without_key_records_error(api, therapist_headers, therapy_session):
    body = create_note(api, therapist_headers, therapy_session, aiEnabled=True).json()
    assert body["aiProcessingStatus"] == "error"
    assert body["aiError"] == "AI service not configured"


def test_regenerate_without_key_is_503(api, therapist_headers, therapy_session):
    note = create_note(api, therapist_headers, therapy_session).json()
    response = api.post(f"/api/ai/regenerate-content/{note['id']}", headers=therapist_headers)
    assert response.status_code == 503


def test_regenerate_with_custom_prompt(api, therapist_headers, therapy_session, fake_ai):
    note = create_note(api, therapist_headers, therapy_session, symptoms="Low energy").json()
    response = api.post(
        f"/api/ai/regenerate-content/{note['id']}",
        json={"customPrompt": "Keep it under 100 words"},
        headers=therapist_headers,
    )
    assert response.status_code == 200
    assert response.json()["aiEnabled"] is True
    assert "Keep it under 100 words" in fake_ai[-1]["system"]


def test_draft_autosave_is_last_write_wins(api, therapist_headers, therapy_session):
    note = create_note(api, therapist_headers, therapy_session).json()
    api.patch(f"/api/session-notes/{note['id']}/draft", json={"draftContent": "first"}, headers=therapist_headers)
    saved = api.patch(
        f"/api/session-notes/{note['id']}/draft", json={"draftContent": "second"}, headers=therapist_headers
    )
    assert saved.json()["draftContent"] == "second"


def test_finalize_composes_content_and_locks_note(api, therapist_headers, therapy_session):
    note = create_note(
        api, therapist_headers, therapy_session, sessionFocus="Grief processing", recommendations="Weekly sessions"
    ).json()

    final = api.post(f"/api/session-notes/{note['id']}/finalize", headers=therapist_headers)
    assert final.status_code == 200
    body = final.json()
    assert body["isFinalized"] is True
    assert body["isDraft"] is False
    assert body["finalizedAt"] is not None
    assert body["finalContent"] == "Session Focus:\nGrief processing\n\nRecommendations:\nWeekly sessions"

    locked = api.put(f"/api/session-notes/{note['id']}", json={"symptoms": "late edit"}, headers=therapist_headers)
    assert locked.status_code == 409
    assert api.delete(f"/api/session-notes/{note['id']}", headers=therapist_headers).status_code == 409
    again = api.post(f"/api/session-notes/{note['id']}/finalize", headers=therapist_headers)
    assert again.status_code == 409


def test_finalize_prefers_draft_content(api, therapist_headers, therapy_session):
    note = create_note(api, therapist_headers, therapy_session, sessionFocus="ignored", draftContent="Edited text").json()
    final = api.post(f"/api/session-notes/{note['id']}/finalize", headers=therapist_headers).json()
    assert final["finalContent"] == "Edited text"


def test_finalize_notifies_supervisor(api, db, practice, therapist, supervisor, therapy_session):
    therapist.supervisor_id = supervisor.id
    db.commit()
    ensure_default_triggers(db, practice.id)

    headers = auth_headers(therapist)
    note = create_note(api, headers, therapy_session).json()
    api.post(f"/api/session-notes/{note['id']}/finalize", headers=headers)

    notification = db.query(Notification).filter(Notification.user_id == supervisor.id).one()
    assert notification.type == "session_note_finalized"
    assert "Jamie Rivera" in notification.title


def test_reading_notes_is_audited(api, db, therapist_headers, therapy_session, client_record):
    note = create_note(api, therapist_headers, therapy_session).json()
    api.get(f"/api/session-notes/{note['id']}", headers=therapist_headers)
    api.get(f"/api/clients/{client_record.id}/session-notes", headers=therapist_headers)

    assert db.query(AuditLog).filter(AuditLog.action == "view_session_note").count() == 2


def test_notes_for_session_and_practice_isolation(api, therapist_headers, therapy_session, other_practice_admin):
    note = create_note(api, therapist_headers, therapy_session).json()

    listed = api.get(f"/api/sessions/{therapy_session.id}/notes", headers=therapist_headers).json()
    assert [n["id"] for n in listed] == [note["id"]]

    outsider = auth_headers(other_practice_admin)
    assert api.get(f"/api/session-notes/{note['id']}", headers=outsider).status_code == 404


def test_pdf_export(api, db, therapist_headers, therapy_session):
    note = create_note(api, therapist_headers, therapy_session, sessionFocus="Boundary setting").json()
    response = api.get(f"/api/session-notes/{note['id']}/pdf", headers=therapist_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert db.query(AuditLog).filter(AuditLog.action == "export_session_note_pdf").count() == 1


def test_notes_of_another_caseload_are_unreachable_by_id(api, therapist_headers, therapy_session, other_therapist):
    note = create_note(api, therapist_headers, therapy_session, symptoms="Panic on the commute").json()
    outsider = auth_headers(other_therapist)

    assert api.get(f"/api/session-notes/{note['id']}", headers=outsider).status_code == 404
    assert api.get(f"/api/sessions/{therapy_session.id}/notes", headers=outsider).status_code == 404
    assert api.put(f"/api/session-notes/{note['id']}", json={"symptoms": "x"}, headers=outsider).status_code == 404
    assert api.post(f"/api/session-notes/{note['id']}/finalize", headers=outsider).status_code == 404
    assert api.get(f"/api/session-notes/{note['id']}/pdf", headers=outsider).status_code == 404

    own = api.get(f"/api/session-notes/{note['id']}", headers=therapist_headers).json()
    assert own["symptoms"] == "Panic on the commute"
    assert own["isFinalized"] is False


def test_supervisor_reads_any_note_in_the_practice(api, therapist_headers, therapy_session, supervisor):
    note = create_note(api, therapist_headers, therapy_session).json()
    assert api.get(f"/api/session-notes/{note['id']}", headers=auth_headers(supervisor)).status_code == 200


def test_repeating_a_note_update_changes_nothing(api, db, therapist_headers, therapy_session):
    note = create_note(api, therapist_headers, therapy_session).json()
    payload = {"sessionFocus": "Sleep hygiene", "moodAfter": 6, "draftContent": "Reviewed sleep diary"}

    first = api.put(f"/api/session-notes/{note['id']}", json=payload, headers=therapist_headers)
    row = db.get(SessionNote, note["id"])
    db.refresh(row)
    stored = (row.session_focus, row.mood_after, row.draft_content, row.updated_at)

    second = api.put(f"/api/session-notes/{note['id']}", json=payload, headers=therapist_headers)
    db.refresh(row)

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert (row.session_focus, row.mood_after, row.draft_content, row.updated_at) == stored
    assert db.query(SessionNote).filter(SessionNote.session_id == therapy_session.id).count() == 1
