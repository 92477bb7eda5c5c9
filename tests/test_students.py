import pytest


@pytest.fixture
def open_projects(client_user, make_project, approve):
    """Six approved projects owned by one client."""
    return [
        approve(make_project(client_user, title=f"Open Project Number {i}")["id"])
        for i in range(1, 7)
    ]


def test_express_interest(client, approved_project, student):
    response = client.post("/api/students/interests",
                           json={"project_id": approved_project["id"], "message": "I know pandas well"},
                           headers=student["headers"])
    assert response.status_code == 201
    data = response.json()
    assert data["interest"]["project_id"] == approved_project["id"]
    assert data["interest"]["message"] == "I know pandas well"
    assert data["interest_count"] == 1
    assert data["max_allowed"] == 5

    mine = client.get("/api/students/interests", headers=student["headers"]).json()
    assert mine["count"] == 1
    assert mine["remaining"] == 4
    assert mine["interests"][0]["organization_name"] == "Acme Logistics"


def test_duplicate_interest_conflict(client, approved_project, student):
    body = {"project_id": approved_project["id"]}
    assert client.post("/api/students/interests", json=body, headers=student["headers"]).status_code == 201
    again = client.post("/api/students/interests", json=body, headers=student["headers"])
    assert again.status_code == 409
    assert again.json()["code"] == "INTEREST_ALREADY_EXISTS"


def test_interest_requires_open_project(client, client_user, make_project, student):
    pending = make_project(client_user)
    response = client.post("/api/students/interests", json={"project_id": pending["id"]},
                           headers=student["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "PROJECT_NOT_AVAILABLE"

    missing = client.post("/api/students/interests", json={"project_id": 9999}, headers=student["headers"])
    assert missing.status_code == 404


def test_interest_limit(client, open_projects, student):
    for project in open_projects[:5]:
        response = client.post("/api/students/interests", json={"project_id": project["id"]},
                               headers=student["headers"])
        assert response.status_code == 201

    over = client.post("/api/students/interests", json={"project_id": open_projects[5]["id"]},
                       headers=student["headers"])
    assert over.status_code == 400
    body = over.json()
    assert body["code"] == "INTEREST_LIMIT_EXCEEDED"
    assert body["details"] == {"current_count": 5, "max_allowed": 5}

    # withdrawing frees a slot
    client.delete(f"/api/students/interests/{open_projects[0]['id']}", headers=student["headers"])
    retry = client.post("/api/students/interests", json={"project_id": open_projects[5]["id"]},
                        headers=student["headers"])
    assert retry.status_code == 201


def test_interest_limit_follows_settings(client, open_projects, student, admin):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"max_student_interests": 1}})
    assert client.post("/api/students/interests", json={"project_id": open_projects[0]["id"]},
                       headers=student["headers"]).status_code == 201
    over = client.post("/api/students/interests", json={"project_id": open_projects[1]["id"]},
                       headers=student["headers"])
    assert over.status_code == 400
    assert over.json()["details"]["max_allowed"] == 1


def test_withdraw_is_soft_and_reexpress_allowed(client, approved_project, student):
    url = f"/api/students/interests/{approved_project['id']}"
    client.post("/api/students/interests", json={"project_id": approved_project["id"]}, headers=student["headers"])

    assert client.delete(url, headers=student["headers"]).status_code == 200
    again = client.delete(url, headers=student["headers"])
    assert again.status_code == 404
    assert again.json()["code"] == "INTEREST_NOT_FOUND"

    stats = client.get("/api/students/stats", headers=student["headers"]).json()
    assert stats["active_interests"] == 0
    assert stats["withdrawn_interests"] == 1

    response = client.post("/api/students/interests", json={"project_id": approved_project["id"]},
                           headers=student["headers"])
    assert response.status_code == 201
    stats = client.get("/api/students/stats", headers=student["headers"]).json()
    assert stats["active_interests"] == 1
    assert stats["withdrawn_interests"] == 1


def test_withdrawal_can_be_disabled(client, approved_project, student, admin):
    client.post("/api/students/interests", json={"project_id": approved_project["id"]}, headers=student["headers"])
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"interest_withdrawal_allowed": False}})

    response = client.delete(f"/api/students/interests/{approved_project['id']}", headers=student["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "FEATURE_DISABLED"


def test_bulk_withdraw(client, open_projects, student):
    for project in open_projects[:3]:
        client.post("/api/students/interests", json={"project_id": project["id"]}, headers=student["headers"])

    ids = [open_projects[0]["id"], open_projects[1]["id"], open_projects[4]["id"]]
    response = client.request("DELETE", "/api/students/interests/bulk",
                              json={"project_ids": ids}, headers=student["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {"requested": 3, "withdrawn": 2, "not_found": 1}
    assert {r["project_id"]: r["status"] for r in data["results"]} == {
        ids[0]: "withdrawn", ids[1]: "withdrawn", ids[2]: "not_found",
    }

    remaining = client.get("/api/students/interests", headers=student["headers"]).json()
    assert [i["project_id"] for i in remaining["interests"]] == [open_projects[2]["id"]]


def test_interest_messages_can_be_disabled(client, approved_project, student, admin):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"enable_interest_messages": False}})
    response = client.post("/api/students/interests",
                           json={"project_id": approved_project["id"], "message": "Hello there"},
                           headers=student["headers"])
    assert response.status_code == 201
    assert response.json()["interest"]["message"] is None


def test_project_interests_for_owner(client, approved_project, client_user, make_client, student, admin):
    client.post("/api/students/interests", json={"project_id": approved_project["id"]}, headers=student["headers"])
    url = f"/api/students/interests/project/{approved_project['id']}"

    owner = client.get(url, headers=client_user["headers"]).json()
    assert owner["count"] == 1
    assert owner["interests"][0]["student_id"] == student["id"]

    assert client.get(url, headers=admin["headers"]).status_code == 200
    assert client.get(url, headers=make_client()["headers"]).status_code == 403
    assert client.get(url, headers=student["headers"]).status_code == 403


def test_favorites(client, approved_project, student):
    url = "/api/students/favorites"
    response = client.post(url, json={"project_id": approved_project["id"]}, headers=student["headers"])
    assert response.status_code == 201
    assert response.json()["favorite_count"] == 1

    duplicate = client.post(url, json={"project_id": approved_project["id"]}, headers=student["headers"])
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "ALREADY_FAVORITED"

    check = client.get(f"{url}/check/{approved_project['id']}", headers=student["headers"]).json()
    assert check["is_favorite"] is True

    favorites = client.get(url, headers=student["headers"]).json()
    assert favorites["count"] == 1
    assert favorites["favorites"][0]["has_expressed_interest"] is False

    assert client.delete(f"{url}/{approved_project['id']}", headers=student["headers"]).status_code == 200
    missing = client.delete(f"{url}/{approved_project['id']}", headers=student["headers"])
    assert missing.status_code == 404
    assert missing.json()["code"] == "FAVORITE_NOT_FOUND"
    check = client.get(f"{url}/check/{approved_project['id']}", headers=student["headers"]).json()
    assert check["is_favorite"] is False


def test_favorites_limit(client, open_projects, student, admin):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"max_student_favorites": 2}})
    for project in open_projects[:2]:
        client.post("/api/students/favorites", json={"project_id": project["id"]}, headers=student["headers"])

    over = client.post("/api/students/favorites", json={"project_id": open_projects[2]["id"]},
                       headers=student["headers"])
    assert over.status_code == 400
    assert over.json()["code"] == "FAVORITES_LIMIT_EXCEEDED"


def test_favorites_feature_flag(client, approved_project, student, admin):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"enable_student_favorites": False}})
    response = client.post("/api/students/favorites", json={"project_id": approved_project["id"]},
                           headers=student["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "FEATURE_DISABLED"


def test_dashboard_and_stats(client, open_projects, student):
    client.post("/api/students/interests", json={"project_id": open_projects[0]["id"]}, headers=student["headers"])
    client.post("/api/students/favorites", json={"project_id": open_projects[1]["id"]}, headers=student["headers"])

    dashboard = client.get("/api/students/dashboard", headers=student["headers"]).json()
    assert dashboard["student"]["email"] == student["email"]
    assert [i["project_id"] for i in dashboard["interests"]] == [open_projects[0]["id"]]
    assert [f["project_id"] for f in dashboard["favorites"]] == [open_projects[1]["id"]]
    assert open_projects[0]["id"] not in {p["id"] for p in dashboard["recommended_projects"]}
    assert dashboard["limits"]["remaining_interests"] == 4

    stats = client.get("/api/students/stats", headers=student["headers"]).json()
    assert stats["available_projects"] == 6
    assert stats["favorites"] == 1
    assert stats["remaining_favorites"] == 19


def test_student_routes_require_student(client, client_user):
    response = client.get("/api/students/interests", headers=client_user["headers"])
    assert response.status_code == 403
    assert client.get("/api/students/interests").status_code == 401
