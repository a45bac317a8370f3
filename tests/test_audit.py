from conftest import STAFF_PASSWORD, auth_headers

from app.models_audit import AuditLog
from app.services.audit_logger import AuditLogger


def seed_logs(db, admin, therapist, client_record):
    audit = AuditLogger(db)
    audit.log_client_access(therapist, client_record.id)
    audit.log_action("update_settings", user=admin, resource_type="practice", risk_level="medium")
    audit.log_document_access(therapist, 3, client_record.id, "download_document")


def test_logs_are_admin_only(api, therapist, db):
    response = api.get("/api/audit/logs", headers=auth_headers(therapist))
    assert response.status_code == 403

    blocked = db.query(AuditLog).filter(AuditLog.action == "unauthorized_access").one()
    assert blocked.result == "blocked"
    assert blocked.risk_level == "critical"
    assert blocked.resource_id == "/api/audit/logs"


def test_list_filters_and_paginates(api, db, admin, admin_headers, therapist, client_record):
    seed_logs(db, admin, therapist, client_record)

    everything = api.get("/api/audit/logs", headers=admin_headers).json()
    assert everything["total"] == 3
    assert everything["logs"][0]["action"] == "download_document"

    by_user = api.get("/api/audit/logs", params={"userId": therapist.id}, headers=admin_headers).json()
    assert {entry["username"] for entry in by_user["logs"]} == {"terry"}

    high = api.get("/api/audit/logs", params={"riskLevel": "high"}, headers=admin_headers).json()
    assert [entry["action"] for entry in high["logs"]] == ["download_document"]

    hipaa = api.get("/api/audit/logs", params={"hipaaOnly": True}, headers=admin_headers).json()
    assert hipaa["total"] == 2

    paged = api.get("/api/audit/logs", params={"pageSize": 2, "page": 2}, headers=admin_headers).json()
    assert paged["totalPages"] == 2
    assert len(paged["logs"]) == 1


def test_invalid_filters_are_400(api, admin_headers):
    assert api.get("/api/audit/logs", params={"riskLevel": "spicy"}, headers=admin_headers).status_code == 400
    assert api.get("/api/audit/logs", params={"startDate": "yesterday"}, headers=admin_headers).status_code == 400


def test_logs_are_practice_scoped(api, db, admin, therapist, client_record, other_practice_admin):
    seed_logs(db, admin, therapist, client_record)
    response = api.get("/api/audit/logs", headers=auth_headers(other_practice_admin)).json()
    assert response["total"] == 0


def test_stats_count_failed_logins_for_the_practice(api, db, admin, admin_headers, therapist, client_record):
    seed_logs(db, admin, therapist, client_record)
    api.post("/api/auth/login", json={"username": "terry", "password": "wrong-password"})
    api.post("/api/auth/login", json={"username": "stranger", "password": STAFF_PASSWORD})

    stats = api.get("/api/audit/stats", headers=admin_headers).json()
    assert stats["failedLoginsLast24h"] == 1
    assert stats["byRiskLevel"]["critical"] == 0
    assert stats["byRiskLevel"]["high"] >= 1
    assert stats["uniqueUsers"] >= 2
    assert stats["hipaaEvents"] == 2


def test_export_is_csv_and_audited(api, db, admin, admin_headers, therapist, client_record):
    seed_logs(db, admin, therapist, client_record)
    response = api.get("/api/audit/export", params={"action": "view_client"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")

    lines = response.text.strip().splitlines()
    assert lines[0].startswith("timestamp,username,action")
    assert len(lines) == 2
    assert ",view_client," in lines[1]

    export = db.query(AuditLog).filter(AuditLog.action == "data_export").one()
    assert export.details == {"recordCount": 1}
