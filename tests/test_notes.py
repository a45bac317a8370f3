from conftest import auth_headers


def add_note(api, user, client_record, **overrides):
    payload = {"clientId": client_record.id, "content": "Prefers afternoon sessions", **overrides}
    response = api.post("/api/notes", json=payload, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_create_note(api, therapist, client_record):
    note = add_note(api, therapist, client_record, title="Scheduling")
    assert note["authorName"] == "Terry Therapist"
    assert note["noteType"] == "general"
    assert note["isPrivate"] is False


def test_private_notes_are_only_for_their_author(api, admin, therapist, client_record):
    add_note(api, therapist, client_record, content="Shared context")
    add_note(api, therapist, client_record, content="Countertransference reflections", isPrivate=True)

    own = api.get(f"/api/clients/{client_record.id}/notes", headers=auth_headers(therapist)).json()
    assert len(own) == 2

    admin_view = api.get(f"/api/clients/{client_record.id}/notes", headers=auth_headers(admin)).json()
    assert [n["content"] for n in admin_view] == ["Shared context"]


def test_notes_follow_client_visibility(api, therapist, other_therapist, client_record):
    add_note(api, therapist, client_record)
    headers = auth_headers(other_therapist)
    assert api.get(f"/api/clients/{client_record.id}/notes", headers=headers).status_code == 404
    response = api.post("/api/notes", json={"clientId": client_record.id, "content": "x"}, headers=headers)
    assert response.status_code == 404


def test_only_author_or_admin_edits(api, admin, supervisor, therapist, client_record):
    note = add_note(api, therapist, client_record)

    blocked = api.put(f"/api/notes/{note['id']}", json={"content": "Edited"}, headers=auth_headers(supervisor))
    assert blocked.status_code == 403

    edited = api.put(f"/api/notes/{note['id']}", json={"content": "Edited", "title": None}, headers=auth_headers(admin))
    assert edited.json()["content"] == "Edited"

    assert api.delete(f"/api/notes/{note['id']}", headers=auth_headers(therapist)).status_code == 200
    assert api.get(f"/api/clients/{client_record.id}/notes", headers=auth_headers(therapist)).json() == []


def test_someone_elses_private_note_is_404(api, admin, therapist, client_record):
    note = add_note(api, therapist, client_record, isPrivate=True)
    assert api.delete(f"/api/notes/{note['id']}", headers=auth_headers(admin)).status_code == 404


def test_note_by_id_follows_client_visibility(api, db, therapist, other_therapist, client_record):
    note = add_note(api, therapist, client_record)
    client_record.assigned_therapist_id = other_therapist.id
    db.commit()

    response = api.put(f"/api/notes/{note['id']}", json={"content": "Edited"}, headers=auth_headers(therapist))
    assert response.status_code == 404
