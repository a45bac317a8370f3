import pytest
from conftest import auth_headers


@pytest.fixture
def library(api, therapist_headers):
    def post(path, payload):
        response = api.post(f"/api/library/{path}", json=payload, headers=therapist_headers)
        assert response.status_code == 201, response.text
        return response.json()

    interventions = post("categories", {"name": "Interventions"})
    cbt = post("categories", {"name": "CBT", "parentId": interventions["id"]})
    reframe = post(
        "entries",
        {
            "categoryId": cbt["id"],
            "title": "Cognitive reframing",
            "content": "Client practiced identifying automatic thoughts.",
            "tags": ["cbt", " thoughts "],
        },
    )
    homework = post(
        "entries",
        {"categoryId": cbt["id"], "title": "Thought record homework", "content": "Assigned a daily thought record."},
    )
    grounding = post(
        "entries",
        {"categoryId": interventions["id"], "title": "Grounding", "content": "5-4-3-2-1 sensory exercise.", "tags": ["anxiety"]},
    )
    return {
        "interventions": interventions,
        "cbt": cbt,
        "reframe": reframe,
        "homework": homework,
        "grounding": grounding,
    }


def test_category_tree_nests_children_with_counts(api, library, therapist_headers):
    tree = api.get("/api/library/categories", headers=therapist_headers).json()
    assert [node["name"] for node in tree] == ["Interventions"]
    root = tree[0]
    assert root["entryCount"] == 1
    assert [child["name"] for child in root["children"]] == ["CBT"]
    assert root["children"][0]["entryCount"] == 2


def test_entry_tags_are_trimmed(library):
    assert library["reframe"]["tags"] == ["cbt", "thoughts"]
    assert library["reframe"]["categoryName"] == "CBT"
    assert library["reframe"]["usageCount"] == 0


def test_category_cannot_nest_under_itself_or_descendant(api, library, therapist_headers):
    interventions = library["interventions"]["id"]
    cbt = library["cbt"]["id"]

    to_self = api.put(f"/api/library/categories/{interventions}", json={"parentId": interventions}, headers=therapist_headers)
    assert to_self.status_code == 400

    to_child = api.put(f"/api/library/categories/{interventions}", json={"parentId": cbt}, headers=therapist_headers)
    assert to_child.status_code == 400

    renamed = api.put(f"/api/library/categories/{cbt}", json={"name": "CBT skills", "sortOrder": None}, headers=therapist_headers)
    assert renamed.json()["name"] == "CBT skills"
    assert renamed.json()["entryCount"] == 2


def test_unknown_parent_is_404(api, therapist_headers):
    response = api.post("/api/library/categories", json={"name": "Orphan", "parentId": 999}, headers=therapist_headers)
    assert response.status_code == 404


def test_entries_filter_by_category(api, library, therapist_headers):
    listed = api.get(
        "/api/library/entries", params={"categoryId": library["cbt"]["id"]}, headers=therapist_headers
    ).json()
    assert [e["title"] for e in listed] == ["Cognitive reframing", "Thought record homework"]


def test_search_matches_title_content_and_tags_by_usage(api, library, therapist_headers):
    homework_id = library["homework"]["id"]
    api.post(f"/api/library/entries/{homework_id}/increment-usage", headers=therapist_headers)
    bumped = api.post(f"/api/library/entries/{homework_id}/increment-usage", headers=therapist_headers).json()
    assert bumped["usageCount"] == 2

    results = api.get("/api/library/search", params={"q": "thought"}, headers=therapist_headers).json()
    assert [e["title"] for e in results] == ["Thought record homework", "Cognitive reframing"]

    by_tag = api.get("/api/library/search", params={"q": "ANXIETY"}, headers=therapist_headers).json()
    assert [e["title"] for e in by_tag] == ["Grounding"]

    scoped = api.get(
        "/api/library/search",
        params={"q": "thought", "categoryId": library["interventions"]["id"]},
        headers=therapist_headers,
    ).json()
    assert scoped == []


def test_entry_soft_delete(api, library, therapist_headers):
    entry_id = library["grounding"]["id"]
    assert api.delete(f"/api/library/entries/{entry_id}", headers=therapist_headers).status_code == 200
    assert api.get(f"/api/library/entries/{entry_id}", headers=therapist_headers).status_code == 404
    tree = api.get("/api/library/categories", headers=therapist_headers).json()
    assert tree[0]["entryCount"] == 0


def test_entry_update_checks_category(api, library, therapist_headers):
    entry_id = library["grounding"]["id"]
    bad = api.put(f"/api/library/entries/{entry_id}", json={"categoryId": 999}, headers=therapist_headers)
    assert bad.status_code == 404

    moved = api.put(
        f"/api/library/entries/{entry_id}", json={"categoryId": library["cbt"]["id"]}, headers=therapist_headers
    ).json()
    assert moved["categoryName"] == "CBT"


def test_connections_link_entries_both_ways(api, library, therapist_headers):
    reframe = library["reframe"]["id"]
    homework = library["homework"]["id"]
    grounding = library["grounding"]["id"]

    strong = api.post(
        "/api/library/connections",
        json={"fromEntryId": reframe, "toEntryId": homework, "connectionType": "supports", "strength": 9},
        headers=therapist_headers,
    ).json()
    assert strong["fromEntryTitle"] == "Cognitive reframing"
    assert strong["toEntryTitle"] == "Thought record homework"

    api.post(
        "/api/library/connections",
        json={"fromEntryId": grounding, "toEntryId": reframe},
        headers=therapist_headers,
    )

    connected = api.get(f"/api/library/entries/{reframe}/connected", headers=therapist_headers).json()
    assert [(c["entry"]["title"], c["direction"], c["strength"]) for c in connected] == [
        ("Thought record homework", "outgoing", 9),
        ("Grounding", "incoming", 5),
    ]

    for_homework = api.get("/api/library/connections", params={"entryId": homework}, headers=therapist_headers).json()
    assert [c["id"] for c in for_homework] == [strong["id"]]


def test_connection_rules(api, library, therapist_headers):
    reframe = library["reframe"]["id"]
    homework = library["homework"]["id"]
    payload = {"fromEntryId": reframe, "toEntryId": homework}

    assert api.post("/api/library/connections", json=payload, headers=therapist_headers).status_code == 201
    assert api.post("/api/library/connections", json=payload, headers=therapist_headers).status_code == 409

    to_self = api.post(
        "/api/library/connections", json={"fromEntryId": reframe, "toEntryId": reframe}, headers=therapist_headers
    )
    assert to_self.status_code == 400

    bad_type = api.post(
        "/api/library/connections",
        json={"fromEntryId": reframe, "toEntryId": homework, "connectionType": "hates"},
        headers=therapist_headers,
    )
    assert bad_type.status_code == 422

    too_strong = api.post(
        "/api/library/connections",
        json={"fromEntryId": homework, "toEntryId": reframe, "strength": 11},
        headers=therapist_headers,
    )
    assert too_strong.status_code == 422


def test_connection_update_and_delete(api, library, therapist_headers):
    created = api.post(
        "/api/library/connections",
        json={"fromEntryId": library["reframe"]["id"], "toEntryId": library["homework"]["id"]},
        headers=therapist_headers,
    ).json()

    updated = api.put(
        f"/api/library/connections/{created['id']}", json={"strength": 2, "description": "weak"}, headers=therapist_headers
    ).json()
    assert updated["strength"] == 2
    assert updated["description"] == "weak"

    assert api.delete(f"/api/library/connections/{created['id']}", headers=therapist_headers).status_code == 200
    assert api.get("/api/library/connections", headers=therapist_headers).json() == []


def test_library_is_practice_scoped(api, library, other_practice_admin):
    outsider = auth_headers(other_practice_admin)
    assert api.get("/api/library/categories", headers=outsider).json() == []
    assert api.get(f"/api/library/entries/{library['reframe']['id']}", headers=outsider).status_code == 404
    entry = api.post(
        "/api/library/entries",
        json={"categoryId": library["cbt"]["id"], "title": "Sneaky", "content": "x"},
        headers=outsider,
    )
    assert entry.status_code == 404
