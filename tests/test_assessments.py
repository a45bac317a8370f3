import pytest
from conftest import auth_headers, make_client

from app.models_assessment import AssessmentAssignment, AssessmentResponse
from app.models_audit import AuditLog

PHQ_LIKE = {
    "name": "Mood Check-In",
    "category": "depression",
    "isStandardized": True,
    "sections": [
        {
            "title": "Symptoms",
            "accessLevel": "shared",
            "isScoring": True,
            "sortOrder": 0,
            "aiReportPrompt": "Relate symptom frequency to functional impact.",
            "questions": [
                {
                    "questionText": "Little interest or pleasure in doing things",
                    "questionType": "multiple_choice",
                    "isRequired": True,
                    "sortOrder": 0,
                    "options": [
                        {"optionText": "Not at all", "optionValue": 0, "sortOrder": 0},
                        {"optionText": "Several days", "optionValue": 1, "sortOrder": 1},
                        {"optionText": "More than half the days", "optionValue": 2, "sortOrder": 2},
                        {"optionText": "Nearly every day", "optionValue": 3, "sortOrder": 3},
                    ],
                },
                {
                    "questionText": "Overall mood this week",
                    "questionType": "rating_scale",
                    "sortOrder": 1,
                    "ratingMin": 1,
                    "ratingMax": 5,
                    "ratingLabels": ["Very low", "Low", "Okay", "Good", "Great"],
                },
            ],
        },
        {
            "title": "Clinician Observations",
            "accessLevel": "therapist_only",
            "sortOrder": 1,
            "questions": [{"questionText": "Affect", "questionType": "long_text"}],
        },
    ],
}


@pytest.fixture
def template(api, admin_headers):
    response = api.post("/api/assessments/templates", json=PHQ_LIKE, headers=admin_headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def assignment(api, admin_headers, template, client_record):
    response = api.post(
        "/api/assessments/assignments",
        json={"templateId": template["id"], "clientId": client_record.id, "dueDate": "2026-11-01"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


def questions_of(template):
    interest, mood = template["sections"][0]["questions"]
    affect = template["sections"][1]["questions"][0]
    return interest, mood, affect


def test_template_is_created_as_a_tree(template):
    assert template["sectionCount"] == 2
    assert template["questionCount"] == 3
    interest, mood, _ = questions_of(template)
    assert [o["optionText"] for o in interest["options"]][-1] == "Nearly every day"
    assert mood["ratingLabels"][3] == "Good"


def test_invalid_rating_range_is_422(api, admin_headers):
    bad = {
        "name": "Broken",
        "sections": [
            {
                "title": "S",
                "questions": [
                    {"questionText": "Q", "questionType": "rating_scale", "ratingMin": 5, "ratingMax": 1}
                ],
            }
        ],
    }
    assert api.post("/api/assessments/templates", json=bad, headers=admin_headers).status_code == 422


def test_unknown_question_type_is_422(api, admin_headers):
    bad = {"name": "Broken", "sections": [{"title": "S", "questions": [{"questionText": "Q", "questionType": "essay"}]}]}
    assert api.post("/api/assessments/templates", json=bad, headers=admin_headers).status_code == 422


def test_add_and_update_question_replaces_options(api, admin_headers, template):
    section_id = template["sections"][1]["id"]
    created = api.post(
        f"/api/assessments/sections/{section_id}/questions",
        json={
            "questionText": "Eye contact",
            "questionType": "multiple_choice",
            "options": [{"optionText": "Good"}, {"optionText": "Poor", "sortOrder": 1}],
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    question_id = created.json()["id"]

    updated = api.put(
        f"/api/assessments/questions/{question_id}",
        json={"options": [{"optionText": "Appropriate"}]},
        headers=admin_headers,
    )
    assert [o["optionText"] for o in updated.json()["options"]] == ["Appropriate"]
    assert updated.json()["questionText"] == "Eye contact"


def test_deleted_template_is_hidden_but_kept(api, admin_headers, template):
    assert api.delete(f"/api/assessments/templates/{template['id']}", headers=admin_headers).status_code == 200

    active = api.get("/api/assessments/templates", headers=admin_headers).json()
    assert active == []
    everything = api.get("/api/assessments/templates", params={"includeInactive": True}, headers=admin_headers).json()
    assert everything[0]["isActive"] is False


def test_inactive_template_cannot_be_assigned(api, admin_headers, template, client_record):
    api.put(f"/api/assessments/templates/{template['id']}", json={"isActive": False}, headers=admin_headers)
    response = api.post(
        "/api/assessments/assignments",
        json={"templateId": template["id"], "clientId": client_record.id},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_assignment_starts_pending(assignment):
    assert assignment["status"] == "pending"
    assert assignment["templateName"] == "Mood Check-In"
    assert assignment["clientName"] == "Jamie Rivera"
    assert assignment["assignedByName"] == "Ada Admin"
    assert assignment["dueDate"] == "2026-11-01"
    assert assignment["hasReport"] is False


def test_therapist_only_lists_assignments_for_their_clients(
    api, db, practice, admin_headers, template, assignment, other_therapist
):
    theirs = make_client(db, practice, other_therapist, seq=2, full_name="Other Client")
    api.post(
        "/api/assessments/assignments",
        json={"templateId": template["id"], "clientId": theirs.id},
        headers=admin_headers,
    )

    assert len(api.get("/api/assessments/assignments", headers=admin_headers).json()) == 2
    mine = api.get("/api/assessments/assignments", headers=auth_headers(other_therapist)).json()
    assert [a["clientName"] for a in mine] == ["Other Client"]

    hidden = api.get(f"/api/assessments/assignments/{assignment['id']}", headers=auth_headers(other_therapist))
    assert hidden.status_code == 404


def test_batch_save_skips_empty_answers(api, admin_headers, template, assignment):
    interest, mood, affect = questions_of(template)
    response = api.post(
        "/api/assessments/responses/batch",
        json={
            "assignmentId": assignment["id"],
            "responses": [
                {"questionId": interest["id"], "selectedOptions": [interest["options"][2]["id"]]},
                {"questionId": mood["id"], "ratingValue": 4},
                {"questionId": affect["id"], "responseText": "   "},
            ],
        },
        headers=admin_headers,
    )
    assert response.json() == {"saved": 2, "skipped": 1}


def test_answers_are_upserted_per_question(api, db, admin_headers, template, assignment):
    _, mood, _ = questions_of(template)
    for value in (2, 5):
        saved = api.post(
            "/api/assessments/responses",
            json={"assignmentId": assignment["id"], "questionId": mood["id"], "ratingValue": value},
            headers=admin_headers,
        )
        assert saved.status_code == 200

    rows = db.query(AssessmentResponse).filter(AssessmentResponse.assignment_id == assignment["id"]).all()
    assert len(rows) == 1
    assert rows[0].rating_value == 5
    assert rows[0].score_value == 5.0


def test_rating_out_of_range_is_400(api, admin_headers, template, assignment):
    _, mood, _ = questions_of(template)
    response = api.post(
        "/api/assessments/responses",
        json={"assignmentId": assignment["id"], "questionId": mood["id"], "ratingValue": 9},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_option_from_another_question_is_400(api, admin_headers, template, assignment):
    interest, mood, _ = questions_of(template)
    response = api.post(
        "/api/assessments/responses",
        json={
            "assignmentId": assignment["id"],
            "questionId": mood["id"],
            "selectedOptions": [interest["options"][0]["id"]],
        },
        headers=admin_headers,
    )
    assert response.status_code == 400


def answer_all(api, headers, template, assignment):
    interest, mood, affect = questions_of(template)
    api.post(
        "/api/assessments/responses/batch",
        json={
            "assignmentId": assignment["id"],
            "responses": [
                {"questionId": interest["id"], "selectedOptions": [interest["options"][2]["id"]]},
                {"questionId": mood["id"], "ratingValue": 4},
                {"questionId": affect["id"], "responseText": "Flat affect, brightened when discussing family"},
            ],
        },
        headers=headers,
    )


def answer_and_complete(api, headers, template, assignment):
    answer_all(api, headers, template, assignment)
    return api.post(f"/api/assessments/assignments/{assignment['id']}/complete", headers=headers)


def test_completion_scores_scoring_sections(api, admin_headers, template, assignment):
    completed = answer_and_complete(api, admin_headers, template, assignment)
    assert completed.status_code == 200
    body = completed.json()
    assert body["status"] == "completed"
    assert body["totalScore"] == 6.0
    assert body["completedAt"] is not None

    summary = api.get(f"/api/assessments/assignments/{assignment['id']}/summary", headers=admin_headers).json()
    assert summary["totalScore"] == 6.0
    assert summary["sectionScores"] == [{"sectionId": template["sections"][0]["id"], "title": "Symptoms", "score": 6.0}]

    interest_row, mood_row = summary["sections"][0]["questions"]
    assert interest_row["primaryText"] == "More than half the days"
    assert mood_row["primaryText"] == "4"
    assert mood_row["secondaryText"] == "Good"


def test_completed_assignment_is_locked(api, admin_headers, template, assignment):
    answer_and_complete(api, admin_headers, template, assignment)
    _, mood, _ = questions_of(template)

    again = api.post(f"/api/assessments/assignments/{assignment['id']}/complete", headers=admin_headers)
    assert again.status_code == 409

    late = api.post(
        "/api/assessments/responses",
        json={"assignmentId": assignment["id"], "questionId": mood["id"], "ratingValue": 1},
        headers=admin_headers,
    )
    assert late.status_code == 409


def test_completed_assignment_status_cannot_be_reopened(api, db, admin_headers, template, assignment):
    completed = answer_and_complete(api, admin_headers, template, assignment).json()

    for status in ("pending", "therapist_completed"):
        response = api.patch(
            f"/api/assessments/assignments/{assignment['id']}", json={"status": status}, headers=admin_headers
        )
        assert response.status_code == 409

    row = db.get(AssessmentAssignment, assignment["id"])
    db.refresh(row)
    assert row.status == "completed"
    assert row.total_score == completed["totalScore"]

    same = api.patch(
        f"/api/assessments/assignments/{assignment['id']}",
        json={"status": "completed", "notes": "Reviewed with client"},
        headers=admin_headers,
    )
    assert same.status_code == 200
    assert same.json()["status"] == "completed"


def test_summary_does_not_write_scores(api, db, admin_headers, template, assignment):
    answer_all(api, admin_headers, template, assignment)

    summary = api.get(f"/api/assessments/assignments/{assignment['id']}/summary", headers=admin_headers).json()
    assert summary["totalScore"] == 6.0
    assert summary["sections"][0]["questions"][0]["scoreValue"] == 2.0

    row = db.get(AssessmentAssignment, assignment["id"])
    db.refresh(row)
    assert row.total_score is None
    assert row.status == "pending"


def test_status_transitions_record_timestamps(api, admin_headers, assignment):
    response = api.patch(
        f"/api/assessments/assignments/{assignment['id']}",
        json={"status": "waiting_for_therapist"},
        headers=admin_headers,
    )
    assert response.json()["status"] == "waiting_for_therapist"
    assert response.json()["clientSubmittedAt"] is not None

    bad = api.patch(
        f"/api/assessments/assignments/{assignment['id']}", json={"status": "archived"}, headers=admin_headers
    )
    assert bad.status_code == 400


def test_viewing_assignment_is_audited(api, db, admin_headers, assignment):
    detail = api.get(f"/api/assessments/assignments/{assignment['id']}", headers=admin_headers).json()
    assert detail["template"]["name"] == "Mood Check-In"
    assert db.query(AuditLog).filter(AuditLog.action == "view_assessment").count() == 1


def test_report_requires_completion_and_ai(api, admin_headers, template, assignment):
    early = api.post(f"/api/assessments/assignments/{assignment['id']}/generate-report", headers=admin_headers)
    assert early.status_code == 400

    answer_and_complete(api, admin_headers, template, assignment)
    no_ai = api.post(f"/api/assessments/assignments/{assignment['id']}/generate-report", headers=admin_headers)
    assert no_ai.status_code == 503


def test_report_lifecycle(api, admin_headers, template, assignment, fake_ai):
    answer_and_complete(api, admin_headers, template, assignment)
    base = f"/api/assessments/assignments/{assignment['id']}"

    generated = api.post(f"{base}/generate-report", headers=admin_headers)
    assert generated.status_code == 200
    assert generated.json()["draftContent"] == "Generated clinical draft."
    prompt = fake_ai[0]
    assert "Total score: 6" in prompt["user"]
    assert "More than half the days" in prompt["user"]
    assert "Relate symptom frequency to functional impact." in prompt["system"]

    edited = api.put(f"{base}/report", json={"draftContent": "Edited report"}, headers=admin_headers)
    assert edited.json()["draftContent"] == "Edited report"

    final = api.post(f"{base}/report/finalize", headers=admin_headers).json()
    assert final["isFinalized"] is True
    assert final["finalContent"] == "Edited report"

    assert api.put(f"{base}/report", json={"draftContent": "x"}, headers=admin_headers).status_code == 409
    assert api.post(f"{base}/generate-report", headers=admin_headers).status_code == 409

    pdf = api.get(f"{base}/report/pdf", headers=admin_headers)
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")

    reopened = api.post(f"{base}/report/unfinalize", headers=admin_headers).json()
    assert reopened["isFinalized"] is False
    assert reopened["draftContent"] == "Edited report"
    assert reopened["finalContent"] is None


def test_finalize_without_content_is_400(api, admin_headers, assignment):
    base = f"/api/assessments/assignments/{assignment['id']}"
    api.put(f"{base}/report", json={"draftContent": "  "}, headers=admin_headers)
    assert api.post(f"{base}/report/finalize", headers=admin_headers).status_code == 400
