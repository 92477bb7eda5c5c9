from conftest import PASSWORD


def test_admin_routes_require_admin(client, student):
    assert client.get("/api/admin/health").status_code == 401
    response = client.get("/api/admin/health", headers=student["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"


def test_system_health(client, admin, approved_project):
    health = client.get("/api/admin/health", headers=admin["headers"]).json()
    assert health["status"] == "healthy"
    assert health["database"] == "connected"
    assert health["counts"]["projects"] == 1
    assert health["counts"]["clients"] == 1


def test_create_users(client, admin, login):
    created = client.post("/api/admin/users/create", headers=admin["headers"], json={
        "user_type": "student", "email": "made@uni.example.edu", "password": PASSWORD, "full_name": "Made By Admin",
    })
    assert created.status_code == 201
    assert created.json()["user"]["type"] == "student"
    assert login("made@uni.example.edu")

    missing = client.post("/api/admin/users/create", headers=admin["headers"], json={
        "user_type": "client", "email": "org@partner.example.com", "password": PASSWORD,
    })
    assert missing.status_code == 400
    assert missing.json()["code"] == "MISSING_FIELDS"

    second_admin = client.post("/api/admin/users/create", headers=admin["headers"], json={
        "user_type": "admin", "email": "second@uni.example.edu", "password": PASSWORD, "full_name": "Second Admin",
    })
    assert second_admin.status_code == 201

    users = client.get("/api/admin/users", headers=admin["headers"]).json()
    assert users["counts"] == {"student": 1, "client": 0, "admin": 2}


def test_archive_and_restore(client, admin, student):
    archive_url = f"/api/admin/users/student/{student['id']}/archive"
    restore_url = f"/api/admin/users/student/{student['id']}/restore"

    assert client.post(archive_url, headers=admin["headers"]).status_code == 200
    again = client.post(archive_url, headers=admin["headers"])
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_ARCHIVED"

    active = client.get("/api/admin/users?user_type=student", headers=admin["headers"]).json()
    assert active["users"]["student"] == []
    everyone = client.get("/api/admin/users?user_type=student&include_archived=true",
                          headers=admin["headers"]).json()
    assert everyone["users"]["student"][0]["is_archived"] == 1

    assert client.post(restore_url, headers=admin["headers"]).status_code == 200
    assert client.post(restore_url, headers=admin["headers"]).json()["code"] == "NOT_ARCHIVED"
    assert client.get("/api/auth/verify", headers=student["headers"]).status_code == 200


def test_cannot_archive_self(client, admin):
    response = client.post(f"/api/admin/users/admin/{admin['id']}/archive", headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "CANNOT_ARCHIVE_SELF"


def test_archive_unknown_user(client, admin):
    response = client.post("/api/admin/users/client/9999/archive", headers=admin["headers"])
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_bulk_archive(client, admin, make_student):
    first, second = make_student(), make_student()
    response = client.post("/api/admin/users/bulk-archive", headers=admin["headers"], json={
        "user_type": "student", "user_ids": [first["id"], second["id"], 9999],
    })
    assert response.status_code == 200
    assert response.json()["summary"] == {"requested": 3, "archived": 2}

    skipped = client.post("/api/admin/users/bulk-archive", headers=admin["headers"], json={
        "user_type": "admin", "user_ids": [admin["id"]],
    }).json()
    assert skipped["results"][0]["status"] == "skipped"


def test_delete_user_requires_confirmation(client, admin, student):
    url = f"/api/admin/users/student/{student['id']}"
    assert client.delete(url, headers=admin["headers"]).json()["code"] == "DELETION_NOT_CONFIRMED"
    response = client.request("DELETE", url, json={"confirm_delete": False}, headers=admin["headers"])
    assert response.status_code == 400

    response = client.request("DELETE", url, json={"confirm_delete": True}, headers=admin["headers"])
    assert response.status_code == 200
    assert client.get("/api/auth/verify", headers=student["headers"]).status_code == 401


def test_delete_student_with_active_interests(client, admin, student, approved_project):
    client.post("/api/students/interests", json={"project_id": approved_project["id"]}, headers=student["headers"])
    url = f"/api/admin/users/student/{student['id']}"

    blocked = client.request("DELETE", url, json={"confirm_delete": True}, headers=admin["headers"])
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "HAS_ACTIVE_INTERESTS"

    client.delete(f"/api/students/interests/{approved_project['id']}", headers=student["headers"])
    assert client.request("DELETE", url, json={"confirm_delete": True}, headers=admin["headers"]).status_code == 200


def test_delete_client_with_live_projects(client, admin, client_user, approved_project):
    url = f"/api/admin/users/client/{client_user['id']}"
    blocked = client.request("DELETE", url, json={"confirm_delete": True}, headers=admin["headers"])
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "HAS_ACTIVE_PROJECTS"

    client.patch(f"/api/projects/{approved_project['id']}/complete", headers=admin["headers"])
    assert client.request("DELETE", url, json={"confirm_delete": True}, headers=admin["headers"]).status_code == 200


def test_admins_cannot_be_deleted(client, admin):
    response = client.request("DELETE", f"/api/admin/users/admin/{admin['id']}",
                              json={"confirm_delete": True}, headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_USER_TYPE"


def test_error_logs_capture_client_errors(client, admin, student):
    client.get("/api/admin/health", headers=student["headers"])

    logs = client.get("/api/admin/logs/errors", params={"level": "warning"}, headers=admin["headers"]).json()
    codes = [entry["error_code"] for entry in logs["logs"]]
    assert "INSUFFICIENT_PERMISSIONS" in codes
    entry = logs["logs"][codes.index("INSUFFICIENT_PERMISSIONS")]
    assert entry["request_url"] == "/api/admin/health"
    assert entry["request_method"] == "GET"

    stats = client.get("/api/admin/logs/stats", headers=admin["headers"]).json()
    assert stats["by_level"]["warning"] >= 1
    assert "INSUFFICIENT_PERMISSIONS" in {row["error_code"] for row in stats["top_error_codes"]}

    export = client.get("/api/admin/logs/export", headers=admin["headers"])
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert export.text.splitlines()[0].startswith("id,created_at,level,error_code")
    assert "INSUFFICIENT_PERMISSIONS" in export.text

    cleanup = client.delete("/api/admin/logs/cleanup", params={"days": 30}, headers=admin["headers"]).json()
    assert cleanup["deleted"] == 0


def test_not_found_is_not_persisted(client, admin):
    client.get("/api/projects/9999")
    logs = client.get("/api/admin/logs/errors", headers=admin["headers"]).json()
    assert "PROJECT_NOT_FOUND" not in [entry["error_code"] for entry in logs["logs"]]


def test_audit_trail(client, admin, approved_project):
    entries = client.get("/api/admin/audit", params={"action": "project_approved"},
                         headers=admin["headers"]).json()["entries"]
    assert len(entries) == 1
    assert entries[0]["entity_id"] == approved_project["id"]
    assert entries[0]["user_type"] == "admin"

    logins = client.get("/api/admin/audit", params={"action": "login_success", "user_type": "admin"},
                        headers=admin["headers"]).json()
    assert logins["pagination"]["total"] == 1


def test_analytics_summary(client, admin, approved_project):
    client.get("/api/projects", params={"q": "forecasting"})
    client.get(f"/api/projects/{approved_project['id']}")

    summary = client.get("/api/admin/analytics", headers=admin["headers"]).json()
    assert summary["events"]["search"] == 1
    assert summary["events"]["project_view"] == 1
    assert summary["top_searches"] == [{"search_query": "forecasting", "count": 1}]
    assert summary["registrations"] == {"client": 1}

    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"enable_analytics": False}})
    assert client.get("/api/admin/analytics", headers=admin["headers"]).status_code == 403


def test_pending_queue(client, admin, client_user, make_project):
    older = make_project(client_user, title="Older Pending Project")
    newer = make_project(client_user, title="Newer Pending Project")
    queue = client.get("/api/admin/projects/pending", headers=admin["headers"]).json()["projects"]
    assert [p["id"] for p in queue] == [older["id"], newer["id"]]
