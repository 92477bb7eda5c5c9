"""
Shared fixtures.

The environment is configured before anything from capstone is imported,
so every module-level get_settings() call sees the test database.
"""

import itertools
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="capstone-tests-")
os.environ.update({
    "ENVIRONMENT": "test",
    "DEBUG": "false",
    "DATABASE_URL": f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}",
    "LOG_DIR": os.path.join(_TMP_DIR, "logs"),
    "LOG_LEVEL": "INFO",
    "BCRYPT_ROUNDS": "4",
    "RATE_LIMIT_MAX": "100000",
    "SETTINGS_CACHE_SECONDS": "300",
    "JWT_SECRET_KEY": "test-secret",
})

import pytest
from fastapi.testclient import TestClient

from capstone.core.security import reset_rate_limits
from capstone.db.sqlite import reset_database
from capstone.main import app
from capstone.services import user_service
from capstone.services.settings_service import get_settings_manager

PASSWORD = "Passw0rd!"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def project_payload(**overrides) -> dict:
    payload = {
        "title": "Inventory Forecasting Tool",
        "description": "Build a forecasting tool that predicts weekly stock levels for a chain of retail stores.",
        "required_skills": "Python, statistics",
        "tools_technologies": "Python, pandas, SQL",
        "deliverables": "Working prototype and final report",
        "semester_availability": "both",
        "project_type": "development",
        "max_students": 4,
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh schema, default settings and empty rate limit counters for every test."""
    reset_database()
    get_settings_manager().seed_defaults()
    reset_rate_limits()
    yield
    get_settings_manager().invalidate()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    def _login(email: str, password: str = PASSWORD) -> dict:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        client.cookies.clear()
        return bearer(response.json()["access_token"])
    return _login


@pytest.fixture
def make_student(client):
    counter = itertools.count(1)

    def _make(email: str = None, full_name: str = "Test Student", **extra) -> dict:
        email = email or f"student{next(counter)}@uni.example.edu"
        response = client.post("/api/auth/register/student", json={
            "email": email, "password": PASSWORD, "full_name": full_name, **extra
        })
        assert response.status_code == 201, response.text
        client.cookies.clear()
        data = response.json()
        return {"id": data["user"]["id"], "email": email, "headers": bearer(data["access_token"])}
    return _make


@pytest.fixture
def make_client(client, login):
    counter = itertools.count(1)

    def _make(email: str = None, organization_name: str = "Acme Logistics", **extra) -> dict:
        email = email or f"partner{next(counter)}@acme.example.com"
        response = client.post("/api/auth/register/client", json={
            "email": email, "password": PASSWORD, "organization_name": organization_name,
            "contact_name": "Jordan Reyes", **extra
        })
        assert response.status_code == 201, response.text
        client.cookies.clear()
        body = response.json()
        account = {"email": email, "headers": login(email), "registration": body}
        account["id"] = client.get("/api/auth/verify", headers=account["headers"]).json()["user"]["id"]
        return account
    return _make


@pytest.fixture
def admin(login):
    admin_id = user_service.create_admin("admin@uni.example.edu", PASSWORD, "Site Admin")
    return {"id": admin_id, "email": "admin@uni.example.edu", "headers": login("admin@uni.example.edu")}


@pytest.fixture
def student(make_student):
    return make_student()


@pytest.fixture
def client_user(make_client):
    return make_client()


@pytest.fixture
def make_project(client):
    def _make(owner: dict, **overrides) -> dict:
        response = client.post("/api/projects", json=project_payload(**overrides), headers=owner["headers"])
        assert response.status_code == 201, response.text
        return response.json()["project"]
    return _make


@pytest.fixture
def approve(client, admin):
    def _approve(project_id: int) -> dict:
        response = client.patch(f"/api/projects/{project_id}/status", json={"status": "approved"},
                                headers=admin["headers"])
        assert response.status_code == 200, response.text
        return response.json()["project"]
    return _approve


@pytest.fixture
def approved_project(client_user, make_project, approve):
    project = make_project(client_user)
    return approve(project["id"])
