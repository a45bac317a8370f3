import pytest
from conftest import auth_headers

from app.domain.help_guides.service import FALLBACK_ANSWER, score_keywords, tokenize_question
from app.models_help import HelpGuide


@pytest.fixture
def guides(db, practice):
    rows = [
        HelpGuide(
            title="Adding clients",
            slug="adding-clients",
            content="Open **Clients** and press *Add Client*.",
            category="clients",
            search_keywords=["add client", "new client", "create client"],
        ),
        HelpGuide(
            title="Scheduling sessions",
            slug="scheduling-sessions",
            content="Use the calendar on the Scheduling page.",
            category="scheduling",
            search_keywords=["schedule appointment", "book session", "calendar"],
        ),
        HelpGuide(
            practice_id=practice.id,
            title="Our intake checklist",
            slug="our-intake-checklist",
            content="Collect insurance cards before the first session.",
            category="clients",
            search_keywords=["intake checklist"],
            sort_order=1,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return rows


def test_tokenize_drops_fillers_and_punctuation():
    assert tokenize_question("How do I add a NEW client?") == ["add", "new", "client"]


def test_score_prefers_complete_specific_phrases():
    tokens = ["schedule", "appointment"]
    full, length = score_keywords(tokens, ["schedule appointment", "calendar"])
    partial, _ = score_keywords(tokens, ["schedule"])
    assert full == pytest.approx(0.5 + 0.4 + 0.04)
    assert length == 2
    assert partial < full


def test_list_includes_global_and_own_practice_guides(api, guides, therapist_headers, other_practice_admin):
    mine = api.get("/api/help-guides", headers=therapist_headers).json()
    assert len(mine) == 3

    theirs = api.get("/api/help-guides", headers=auth_headers(other_practice_admin)).json()
    assert [g["slug"] for g in theirs] == ["adding-clients", "scheduling-sessions"]

    clients_only = api.get("/api/help-guides", params={"category": "clients"}, headers=therapist_headers).json()
    assert [g["title"] for g in clients_only] == ["Adding clients", "Our intake checklist"]


def test_search_ranks_title_over_keyword_over_content(api, guides, therapist_headers):
    results = api.get("/api/help-guides/search", params={"q": "calendar"}, headers=therapist_headers).json()
    assert [g["slug"] for g in results] == ["scheduling-sessions"]

    session_hits = api.get("/api/help-guides/search", params={"q": "session"}, headers=therapist_headers).json()
    # title "Scheduling sessions" beats content mention in the intake checklist
    assert [g["slug"] for g in session_hits] == ["scheduling-sessions", "our-intake-checklist"]


def test_get_by_slug_counts_views(api, guides, therapist_headers):
    first = api.get("/api/help-guides/slug/adding-clients", headers=therapist_headers).json()
    second = api.get("/api/help-guides/slug/adding-clients", headers=therapist_headers).json()
    assert second["viewCount"] == first["viewCount"] + 1
    assert api.get("/api/help-guides/slug/missing", headers=therapist_headers).status_code == 404


def test_mark_helpful(api, guides, therapist_headers):
    response = api.post(f"/api/help-guides/{guides[0].id}/helpful", headers=therapist_headers)
    assert response.json()["helpfulCount"] == 1


def test_ask_returns_best_matching_guide(api, guides, therapist_headers):
    response = api.post("/api/help-guides/ask", json={"question": "How do I add a new client?"}, headers=therapist_headers)
    body = response.json()
    assert body["guide"]["slug"] == "adding-clients"
    assert body["answer"] == "Open **Clients** and press *Add Client*."
    assert body["score"] > 0.3


def test_ask_falls_back_when_nothing_matches(api, guides, therapist_headers):
    body = api.post("/api/help-guides/ask", json={"question": "Will it rain tomorrow?"}, headers=therapist_headers).json()
    assert body["guide"] is None
    assert body["answer"] == FALLBACK_ANSWER
    assert body["score"] == 0.0


def test_suggestions_default_to_dashboard(api, therapist_headers):
    billing = api.get("/api/help-guides/suggestions", params={"page": "billing"}, headers=therapist_headers).json()
    assert "How do I add a service?" in billing
    fallback = api.get("/api/help-guides/suggestions", params={"page": "nowhere"}, headers=therapist_headers).json()
    assert fallback[0] == "How do I add a new client?"


def test_admin_creates_sanitized_practice_guide(api, admin_headers, therapist_headers, practice):
    payload = {
        "title": "Billing FAQ",
        "content": "<p>Ask the front desk</p><script>alert(1)</script>",
        "category": "billing",
        "searchKeywords": [" Billing Question ", ""],
    }
    assert api.post("/api/help-guides", json=payload, headers=therapist_headers).status_code == 403

    created = api.post("/api/help-guides", json=payload, headers=admin_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["slug"] == "billing-faq"
    assert body["practiceId"] == practice.id
    assert "<script>" not in body["content"]
    assert body["searchKeywords"] == ["billing question"]

    duplicate = api.post("/api/help-guides", json=payload, headers=admin_headers)
    assert duplicate.status_code == 409


def test_invalid_category_is_422(api, admin_headers):
    payload = {"title": "X", "content": "Y", "category": "astrology"}
    assert api.post("/api/help-guides", json=payload, headers=admin_headers).status_code == 422


def test_built_in_guides_are_read_only(api, guides, admin_headers):
    response = api.put(f"/api/help-guides/{guides[0].id}", json={"title": "Mine now"}, headers=admin_headers)
    assert response.status_code == 403


def test_practice_guide_update_and_soft_delete(api, db, guides, admin_headers, other_practice_admin):
    own = guides[2]
    outsider = api.delete(f"/api/help-guides/{own.id}", headers=auth_headers(other_practice_admin))
    assert outsider.status_code == 404

    updated = api.put(f"/api/help-guides/{own.id}", json={"sortOrder": 5}, headers=admin_headers).json()
    assert updated["sortOrder"] == 5

    assert api.delete(f"/api/help-guides/{own.id}", headers=admin_headers).status_code == 200
    db.refresh(own)
    assert own.is_active is False
    slugs = [g["slug"] for g in api.get("/api/help-guides", headers=admin_headers).json()]
    assert "our-intake-checklist" not in slugs
