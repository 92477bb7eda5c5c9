from datetime import datetime

import pytest


def gallery_item(**overrides) -> dict:
    item = {
        "title": "Smart Irrigation Controller",
        "description": "Sensor network that waters crops only when the soil needs it.",
        "year": 2024,
        "category": "IoT",
        "client_name": "Green Farms",
        "team_members": "A. Chen, B. Okafor",
        "image_urls": ["https://img.example.com/irrigation.png"],
    }
    item.update(overrides)
    return item


@pytest.fixture
def completed_project(client, approved_project, admin):
    response = client.patch(f"/api/projects/{approved_project['id']}/complete", headers=admin["headers"])
    assert response.status_code == 200
    return response.json()["project"]


def test_only_completed_projects_enter_gallery(client, approved_project, admin):
    response = client.post(f"/api/gallery/admin/from-project/{approved_project['id']}", json={},
                           headers=admin["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "PROJECT_NOT_COMPLETED"


def test_add_completed_project(client, completed_project, admin):
    url = f"/api/gallery/admin/from-project/{completed_project['id']}"
    response = client.post(url, json={"outcomes": "Deployed to 12 stores"}, headers=admin["headers"])
    assert response.status_code == 201
    item = response.json()["item"]
    assert item["project_id"] == completed_project["id"]
    assert item["title"] == completed_project["title"]
    assert item["client_name"] == "Acme Logistics"
    assert item["category"] == "development"
    assert item["year"] == datetime.utcnow().year
    assert item["status"] == "pending"
    assert item["image_urls"] == []

    # pending items stay out of the public gallery
    assert client.get("/api/gallery").json()["items"] == []
    assert client.get(f"/api/gallery/{item['id']}").status_code == 404

    duplicate = client.post(url, json={}, headers=admin["headers"])
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "PROJECT_ALREADY_IN_GALLERY"

    approved = client.patch(f"/api/gallery/admin/{item['id']}/status", json={"status": "approved"},
                            headers=admin["headers"])
    assert approved.json()["item"]["approved_by"] == admin["id"]
    public = client.get(f"/api/gallery/{item['id']}")
    assert public.status_code == 200
    assert public.json()["item"]["outcomes"] == "Deployed to 12 stores"


def test_manual_items_and_filters(client, admin):
    for overrides in ({}, {"title": "Hospital Queue Tracker", "category": "Health", "year": 2023},
                      {"title": "Unreviewed Submission", "status": "pending"}):
        response = client.post("/api/gallery/admin/create", json=gallery_item(**overrides), headers=admin["headers"])
        assert response.status_code == 201

    listing = client.get("/api/gallery").json()
    assert [i["title"] for i in listing["items"]] == ["Smart Irrigation Controller", "Hospital Queue Tracker"]
    assert listing["items"][0]["image_urls"] == ["https://img.example.com/irrigation.png"]

    by_year = client.get("/api/gallery", params={"year": 2023}).json()["items"]
    assert [i["title"] for i in by_year] == ["Hospital Queue Tracker"]
    by_category = client.get("/api/gallery", params={"category": "IoT"}).json()["items"]
    assert [i["title"] for i in by_category] == ["Smart Irrigation Controller"]

    filters = client.get("/api/gallery/stats/filters").json()
    assert filters["years"] == [{"year": 2024, "count": 1}, {"year": 2023, "count": 1}]
    assert {row["category"] for row in filters["categories"]} == {"IoT", "Health"}

    pending = client.get("/api/gallery/admin/pending", headers=admin["headers"]).json()
    assert pending["count"] == 1
    everything = client.get("/api/gallery/admin/all", headers=admin["headers"]).json()
    assert everything["count"] == 3
    overview = client.get("/api/gallery/admin/stats/overview", headers=admin["headers"]).json()
    assert overview["by_status"] == {"pending": 1, "approved": 2, "rejected": 0}
    assert overview["completed_projects_not_in_gallery"] == 0


def test_update_and_delete_item(client, admin):
    item = client.post("/api/gallery/admin/create", json=gallery_item(), headers=admin["headers"]).json()["item"]
    url = f"/api/gallery/admin/{item['id']}"

    updated = client.put(url, json={"title": "Smart Irrigation v2", "image_urls": []}, headers=admin["headers"])
    assert updated.status_code == 200
    assert updated.json()["item"]["title"] == "Smart Irrigation v2"
    assert updated.json()["item"]["image_urls"] == []

    assert client.put(url, json={}, headers=admin["headers"]).json()["code"] == "NO_UPDATES"

    nulled = client.put(url, json={"title": None}, headers=admin["headers"])
    assert nulled.status_code == 400
    assert nulled.json()["code"] == "VALIDATION_ERROR"

    assert client.delete(url, headers=admin["headers"]).status_code == 200
    assert client.delete(url, headers=admin["headers"]).status_code == 404


def test_gallery_admin_requires_admin(client, student):
    response = client.post("/api/gallery/admin/create", json=gallery_item(), headers=student["headers"])
    assert response.status_code == 403


def test_gallery_visibility_settings(client, admin, student):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"public_gallery_visibility": False}})
    anonymous = client.get("/api/gallery")
    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == "LOGIN_REQUIRED"
    assert client.get("/api/gallery", headers=student["headers"]).status_code == 200

    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"enable_gallery": False}})
    disabled = client.get("/api/gallery", headers=student["headers"])
    assert disabled.status_code == 403
    assert disabled.json()["code"] == "FEATURE_DISABLED"
