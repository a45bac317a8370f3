from datetime import datetime

import pytest
from conftest import PORTAL_PASSWORD, make_client, portal_headers

from app.config import PORTAL_COOKIE_NAME
from app.domain.billing.service import ensure_session_billing
from app.models import TherapySession
from app.models_audit import AuditLog
from app.models_billing import Service
from app.models_notification import Notification
from app.practice_time import utcnow
from app.security_utils import PORTAL_ACTIVATION_SALT, PORTAL_RESET_SALT, generate_timed_token
from app.services.notification_service import ensure_default_triggers

NEXT_YEAR = utcnow().year + 1
# February keeps New York on standard time (UTC-5)
BOOKING_DAY = f"{NEXT_YEAR}-02-10"


@pytest.fixture
def pat(portal_client):
    return portal_headers(portal_client)


def add_session(db, client, therapist, when, status="scheduled", duration=50, **kwargs):
    session = TherapySession(
        practice_id=client.practice_id,
        client_id=client.id,
        therapist_id=therapist.id,
        session_date=when,
        duration=duration,
        status=status,
        **kwargs,
    )
    db.add(session)
    db.commit()
    return session


# ============================================
# Auth
# ============================================


def test_login_sets_portal_cookie(api, db, portal_client):
    response = api.post("/api/portal/auth/login", json={"email": " PAT@clients.example ", "password": PORTAL_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["client"]["fullName"] == "Pat Portal"
    assert body["client"]["therapistName"] == "Terry Therapist"
    assert body["client"]["practiceName"] == "Calm Waters Counseling"
    assert PORTAL_COOKIE_NAME in response.cookies

    db.refresh(portal_client)
    assert portal_client.portal_last_login is not None
    assert db.query(AuditLog).filter(AuditLog.action == "portal_login").count() == 1


def test_login_rejects_bad_password(api, portal_client):
    response = api.post("/api/portal/auth/login", json={"email": "pat@clients.example", "password": "nope"})
    assert response.status_code == 401


def test_login_rejects_revoked_access(api, db, portal_client):
    portal_client.has_portal_access = False
    db.commit()
    response = api.post("/api/portal/auth/login", json={"email": "pat@clients.example", "password": PORTAL_PASSWORD})
    assert response.status_code == 403


def test_login_before_activation_is_403(api, db, practice):
    make_client(db, practice, seq=60, has_portal_access=True, portal_email="new@clients.example")
    response = api.post("/api/portal/auth/login", json={"email": "new@clients.example", "password": PORTAL_PASSWORD})
    assert response.status_code == 403


def test_activation_sets_password(api, db, practice):
    client = make_client(db, practice, seq=61, has_portal_access=True)
    token = generate_timed_token({"client_id": client.id, "email": "river@clients.example"}, PORTAL_ACTIVATION_SALT)

    weak = api.post("/api/portal/activate", json={"token": token, "password": "short"})
    assert weak.status_code == 400

    activated = api.post("/api/portal/activate", json={"token": token, "password": PORTAL_PASSWORD})
    assert activated.status_code == 200

    login = api.post("/api/portal/auth/login", json={"email": "river@clients.example", "password": PORTAL_PASSWORD})
    assert login.status_code == 200
    db.refresh(client)
    assert client.portal_activated_at is not None


def test_activation_rejects_tampered_token(api):
    response = api.post("/api/portal/activate", json={"token": "not-a-token", "password": PORTAL_PASSWORD})
    assert response.status_code == 400


def test_reset_password_with_token(api, portal_client):
    token = generate_timed_token({"client_id": portal_client.id}, PORTAL_RESET_SALT)
    new_password = "Fresh-Start-2026!"
    assert api.post("/api/portal/reset-password", json={"token": token, "password": new_password}).status_code == 200

    login = api.post("/api/portal/auth/login", json={"email": "pat@clients.example", "password": new_password})
    assert login.status_code == 200


def test_forgot_password_never_reveals_accounts(api, portal_client):
    known = api.post("/api/portal/forgot-password", json={"email": "pat@clients.example"}).json()
    unknown = api.post("/api/portal/forgot-password", json={"email": "ghost@clients.example"}).json()
    assert known == unknown


def test_revoked_access_blocks_live_sessions(api, db, portal_client, pat):
    assert api.get("/api/portal/me", headers=pat).status_code == 200
    portal_client.has_portal_access = False
    db.commit()
    assert api.get("/api/portal/me", headers=pat).status_code == 403


def test_staff_token_cannot_use_portal(api, therapist_headers):
    assert api.get("/api/portal/me", headers=therapist_headers).status_code == 401


# ============================================
# Appointments
# ============================================


def test_appointments_split_upcoming_and_past(api, db, portal_client, therapist, pat):
    add_session(db, portal_client, therapist, datetime(2025, 1, 6, 15, 0), status="completed")
    add_session(db, portal_client, therapist, datetime(NEXT_YEAR, 1, 6, 15, 0))
    add_session(db, portal_client, therapist, datetime(NEXT_YEAR, 1, 13, 15, 0), status="cancelled")

    body = api.get("/api/portal/appointments", headers=pat).json()
    assert [s["status"] for s in body["upcoming"]] == ["scheduled"]
    assert [s["status"] for s in body["past"]] == ["cancelled", "completed"]
    assert body["upcoming"][0]["therapistName"] == "Terry Therapist"


def test_services_hide_therapist_only_entries(api, db, practice, pat):
    db.add_all(
        [
            Service(practice_id=practice.id, service_code="90834", service_name="Psychotherapy 45 min", duration=45, base_rate=150.0),
            Service(
                practice_id=practice.id,
                service_code="90839",
                service_name="Crisis Session",
                duration=60,
                base_rate=220.0,
                therapist_visible=False,
            ),
        ]
    )
    db.commit()
    services = api.get("/api/portal/services", headers=pat).json()
    assert [s["serviceCode"] for s in services] == ["90834"]


def test_available_slots_skip_busy_times(api, db, portal_client, therapist, pat):
    # 10:00 local
    add_session(db, portal_client, therapist, datetime(NEXT_YEAR, 2, 10, 15, 0))

    slots = api.get(
        "/api/portal/available-slots", params={"startDate": BOOKING_DAY, "endDate": BOOKING_DAY}, headers=pat
    ).json()
    times = [slot["time"] for slot in slots[BOOKING_DAY]]
    assert times == ["09:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00"]
    assert slots[BOOKING_DAY][0]["sessionDate"].startswith(f"{BOOKING_DAY}T14:00:00")


def test_available_slots_in_the_past_are_empty(api, pat):
    slots = api.get("/api/portal/available-slots", params={"startDate": "2020-01-06", "endDate": "2020-01-07"}, headers=pat).json()
    assert slots == {"2020-01-06": [], "2020-01-07": []}


def test_available_slots_validate_range(api, pat):
    too_long = api.get(
        "/api/portal/available-slots",
        params={"startDate": f"{NEXT_YEAR}-02-01", "endDate": f"{NEXT_YEAR}-03-04"},
        headers=pat,
    )
    assert too_long.status_code == 400

    backwards = api.get(
        "/api/portal/available-slots",
        params={"startDate": f"{NEXT_YEAR}-02-10", "endDate": f"{NEXT_YEAR}-02-09"},
        headers=pat,
    )
    assert backwards.status_code == 400


def test_slots_need_an_assigned_therapist(api, db, portal_client, pat):
    portal_client.assigned_therapist_id = None
    db.commit()
    response = api.get(
        "/api/portal/available-slots", params={"startDate": BOOKING_DAY, "endDate": BOOKING_DAY}, headers=pat
    )
    assert response.status_code == 400


def test_book_appointment(api, db, portal_client, pat):
    response = api.post(
        "/api/portal/book-appointment",
        json={"sessionDate": f"{BOOKING_DAY}T15:00:00Z", "notes": "First visit"},
        headers=pat,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["bookedViaPortal"] is True
    assert body["status"] == "scheduled"
    assert body["sessionType"] == "psychotherapy"

    clash = api.post("/api/portal/book-appointment", json={"sessionDate": f"{BOOKING_DAY}T15:30:00Z"}, headers=pat)
    assert clash.status_code == 409

    db.refresh(portal_client)
    assert portal_client.next_appointment_date == datetime(NEXT_YEAR, 2, 10, 15, 0)


def test_booking_rejects_past_and_hidden_services(api, db, practice, pat):
    hidden = Service(
        practice_id=practice.id, service_code="90839", service_name="Crisis", duration=60, base_rate=220.0, therapist_visible=False
    )
    db.add(hidden)
    db.commit()

    past = api.post("/api/portal/book-appointment", json={"sessionDate": "2020-01-06T15:00:00Z"}, headers=pat)
    assert past.status_code == 400

    response = api.post(
        "/api/portal/book-appointment",
        json={"sessionDate": f"{BOOKING_DAY}T15:00:00Z", "serviceId": hidden.id},
        headers=pat,
    )
    assert response.status_code == 400


# ============================================
# Documents and invoices
# ============================================


def test_client_sees_only_shared_documents(api, db, admin_headers, portal_client, pat):
    for name, shared in (("welcome.txt", "true"), ("private.txt", "false")):
        api.post(
            f"/api/clients/{portal_client.id}/documents",
            files={"file": (name, b"hello", "text/plain")},
            data={"isSharedInPortal": shared},
            headers=admin_headers,
        )

    documents = api.get("/api/portal/documents", headers=pat).json()
    assert [d["originalName"] for d in documents] == ["welcome.txt"]

    downloaded = api.get(f"/api/portal/documents/{documents[0]['id']}/download", headers=pat)
    assert downloaded.content == b"hello"
    assert db.query(AuditLog).filter(AuditLog.action == "portal_download_document").count() == 1


def test_other_clients_documents_are_404(api, db, admin_headers, client_record, pat):
    other = api.post(
        f"/api/clients/{client_record.id}/documents",
        files={"file": ("theirs.txt", b"secret", "text/plain")},
        data={"isSharedInPortal": "true"},
        headers=admin_headers,
    ).json()
    assert api.get(f"/api/portal/documents/{other['id']}/download", headers=pat).status_code == 404


def test_client_upload_notifies_therapist(api, db, practice, therapist, pat):
    ensure_default_triggers(db, practice.id)
    response = api.post(
        "/api/portal/upload-document", files={"file": ("insurance.pdf", b"%PDF-1.4 card", "application/pdf")}, headers=pat
    )
    assert response.status_code == 201
    body = response.json()
    assert body["category"] == "client_upload"
    assert body["isSharedInPortal"] is True

    notification = db.query(Notification).filter(Notification.type == "document_uploaded").one()
    assert notification.user_id == therapist.id
    assert notification.title == "Pat Portal uploaded insurance.pdf"


def test_invoices_are_the_clients_own(api, db, portal_client, client_record, therapist, practice, pat):
    service = Service(practice_id=practice.id, service_code="90834", service_name="Psychotherapy 45 min", duration=45, base_rate=150.0)
    db.add(service)
    db.commit()
    for client in (portal_client, client_record):
        session = add_session(
            db, client, therapist, datetime(2026, 3, 2, 15, 0), status="completed", duration=45, service_id=service.id
        )
        ensure_session_billing(db, session)
        db.commit()

    invoices = api.get("/api/portal/invoices", headers=pat).json()
    assert len(invoices) == 1
    assert invoices[0]["clientName"] == "Pat Portal"
    assert invoices[0]["totalAmount"] == 150.0


# ============================================
# Forms
# ============================================


INTAKE_FORM = {
    "name": "Intake Questionnaire",
    "category": "intake",
    "sections": [
        {
            "title": "About You",
            "accessLevel": "client_only",
            "questions": [
                {"questionText": "What brings you in?", "questionType": "long_text", "isRequired": True},
                {"questionText": "Sleep quality", "questionType": "rating_scale", "ratingMin": 1, "ratingMax": 5},
            ],
        },
        {
            "title": "Clinician Notes",
            "accessLevel": "therapist_only",
            "questions": [{"questionText": "Initial impression", "questionType": "long_text"}],
        },
    ],
}


@pytest.fixture
def intake(api, admin_headers, portal_client):
    template = api.post("/api/assessments/templates", json=INTAKE_FORM, headers=admin_headers).json()
    assignment = api.post(
        "/api/assessments/assignments",
        json={"templateId": template["id"], "clientId": portal_client.id},
        headers=admin_headers,
    ).json()
    client_questions = template["sections"][0]["questions"]
    staff_question = template["sections"][1]["questions"][0]
    return assignment, client_questions, staff_question


def test_forms_show_client_sections_only(api, intake, pat):
    assignment, _, _ = intake
    listed = api.get("/api/portal/forms/assignments", headers=pat).json()
    assert [a["id"] for a in listed] == [assignment["id"]]

    detail = api.get(f"/api/portal/forms/assignments/{assignment['id']}", headers=pat).json()
    assert [s["title"] for s in detail["template"]["sections"]] == ["About You"]
    assert detail["totalScore"] is None


def test_client_answers_then_submits(api, db, practice, therapist, intake, pat):
    ensure_default_triggers(db, practice.id)
    assignment, (concern, sleep), _ = intake

    saved = api.post(
        "/api/portal/forms/responses",
        json={
            "assignmentId": assignment["id"],
            "responses": [
                {"questionId": concern["id"], "responseText": "Trouble sleeping since the move"},
                {"questionId": sleep["id"], "ratingValue": 2},
            ],
        },
        headers=pat,
    )
    assert saved.json() == {"saved": 2, "skipped": 0}

    detail = api.get(f"/api/portal/forms/assignments/{assignment['id']}", headers=pat).json()
    assert detail["status"] == "client_in_progress"
    assert detail["responseCount"] == 2

    submitted = api.post(f"/api/portal/forms/submit/{assignment['id']}", headers=pat).json()
    assert submitted["status"] == "waiting_for_therapist"
    assert submitted["clientSubmittedAt"] is not None

    notification = db.query(Notification).filter(Notification.type == "assessment_submitted").one()
    assert notification.user_id == therapist.id

    again = api.post(f"/api/portal/forms/submit/{assignment['id']}", headers=pat)
    assert again.status_code == 409
    late = api.post(
        "/api/portal/forms/responses",
        json={"assignmentId": assignment["id"], "responses": [{"questionId": sleep["id"], "ratingValue": 5}]},
        headers=pat,
    )
    assert late.status_code == 409


def test_client_cannot_answer_staff_questions(api, intake, pat):
    assignment, _, staff_question = intake
    response = api.post(
        "/api/portal/forms/responses",
        json={"assignmentId": assignment["id"], "responses": [{"questionId": staff_question["id"], "responseText": "hi"}]},
        headers=pat,
    )
    assert response.status_code == 403


def test_staff_only_forms_are_hidden(api, db, admin_headers, portal_client, pat):
    template = api.post(
        "/api/assessments/templates",
        json={
            "name": "Risk Review",
            "category": "risk",
            "sections": [{"title": "Risk", "accessLevel": "therapist_only", "questions": [{"questionText": "Plan?", "questionType": "short_text"}]}],
        },
        headers=admin_headers,
    ).json()
    assignment = api.post(
        "/api/assessments/assignments",
        json={"templateId": template["id"], "clientId": portal_client.id},
        headers=admin_headers,
    ).json()

    assert api.get("/api/portal/forms/assignments", headers=pat).json() == []
    assert api.get(f"/api/portal/forms/assignments/{assignment['id']}", headers=pat).status_code == 404


def test_other_clients_forms_are_404(api, db, admin_headers, practice, therapist, intake):
    assignment, _, _ = intake
    stranger = make_client(db, practice, therapist, seq=70, has_portal_access=True)
    response = api.get(f"/api/portal/forms/assignments/{assignment['id']}", headers=portal_headers(stranger))
    assert response.status_code == 404
