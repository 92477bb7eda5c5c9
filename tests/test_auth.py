from starlette.requests import Request

from capstone.core import security
from conftest import PASSWORD, bearer, project_payload


def test_register_student_returns_token_and_cookies(client):
    response = client.post("/api/auth/register/student", json={
        "email": "Ana.Lopez@uni.example.edu", "password": PASSWORD, "full_name": "Ana Lopez",
        "student_number": "12345678",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["type"] == "student"
    assert data["user"]["email"] == "ana.lopez@uni.example.edu"
    assert "auth_token" in response.cookies

    me = client.get("/api/auth/verify", headers=bearer(data["access_token"]))
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Ana Lopez"


def test_register_student_validation(client):
    weak = client.post("/api/auth/register/student", json={
        "email": "weak@uni.example.edu", "password": "password", "full_name": "Weak Password",
    })
    assert weak.status_code == 400
    assert weak.json()["code"] == "VALIDATION_ERROR"
    assert any(err["field"] == "password" for err in weak.json()["details"])

    bad_number = client.post("/api/auth/register/student", json={
        "email": "num@uni.example.edu", "password": PASSWORD, "full_name": "Bad Number",
        "student_number": "12AB",
    })
    assert bad_number.status_code == 400


def test_email_is_unique_across_account_types(client, make_student):
    make_student(email="taken@uni.example.edu")

    again = client.post("/api/auth/register/student", json={
        "email": "TAKEN@uni.example.edu", "password": PASSWORD, "full_name": "Someone Else",
    })
    assert again.status_code == 409
    assert again.json()["code"] == "EMAIL_EXISTS"

    as_client = client.post("/api/auth/register/client", json={
        "email": "taken@uni.example.edu", "password": PASSWORD,
        "organization_name": "Taken Org", "contact_name": "Sam Lee",
    })
    assert as_client.status_code == 409


def test_student_domain_whitelist(client, admin):
    response = client.put("/api/admin/settings/update", headers=admin["headers"],
                          json={"settings": {"student_domain_whitelist": ["@uni.example.edu"]}})
    assert response.status_code == 200

    blocked = client.post("/api/auth/register/student", json={
        "email": "someone@gmail.com", "password": PASSWORD, "full_name": "Outside Student",
    })
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "DOMAIN_NOT_ALLOWED"

    allowed = client.post("/api/auth/register/student", json={
        "email": "inside@uni.example.edu", "password": PASSWORD, "full_name": "Inside Student",
    })
    assert allowed.status_code == 201


def test_register_client_with_initial_project(client, admin):
    response = client.post("/api/auth/register/client", json={
        "email": "cto@startup.example.com", "password": PASSWORD,
        "organization_name": "Startup Labs", "contact_name": "Mia Wong",
        "project": {
            "title": "Customer Churn Model",
            "description": "Predict which subscribers are likely to cancel next month.",
            "semester_availability": "semester2",
        },
    })
    assert response.status_code == 201
    data = response.json()
    assert data["has_project"] is True
    assert data["status"] == "pending_review"
    assert "access_token" not in data

    pending = client.get("/api/projects/admin/pending", headers=admin["headers"]).json()["projects"]
    assert [p["title"] for p in pending] == ["Customer Churn Model"]
    assert pending[0]["organization_name"] == "Startup Labs"


def test_register_client_discuss_first_skips_project(client):
    response = client.post("/api/auth/register/client", json={
        "email": "ops@later.example.com", "password": PASSWORD,
        "organization_name": "Later Ltd", "contact_name": "Noah Kim",
        "discuss_first": True,
        "project": {"title": "Something Later", "description": "We would like to talk about this first."},
    })
    assert response.status_code == 201
    assert response.json()["has_project"] is False
    assert response.json()["project_id"] is None


def test_register_client_incomplete_project(client):
    response = client.post("/api/auth/register/client", json={
        "email": "half@partial.example.com", "password": PASSWORD,
        "organization_name": "Partial Co", "contact_name": "Eli Park",
        "project": {"title": "Only A Title"},
    })
    assert response.status_code == 400

    # the account was not created either
    retry = client.post("/api/auth/register/client", json={
        "email": "half@partial.example.com", "password": PASSWORD,
        "organization_name": "Partial Co", "contact_name": "Eli Park",
    })
    assert retry.status_code == 201


def test_client_approval_required_mode(client, admin):
    client.put("/api/admin/settings/update", headers=admin["headers"],
               json={"settings": {"client_registration_mode": "approval_required"}})

    response = client.post("/api/auth/register/client", json={
        "email": "new@pending.example.com", "password": PASSWORD,
        "organization_name": "Pending Org", "contact_name": "Ava Stone",
    })
    assert response.status_code == 201

    login = client.post("/api/auth/login", json={"email": "new@pending.example.com", "password": PASSWORD})
    assert login.status_code == 403
    assert login.json()["code"] == "ACCOUNT_ARCHIVED"

    archived = client.get("/api/admin/users?user_type=client&include_archived=true",
                          headers=admin["headers"]).json()["users"]["client"]
    client.post(f"/api/admin/users/client/{archived[0]['id']}/restore", headers=admin["headers"])
    login = client.post("/api/auth/login", json={"email": "new@pending.example.com", "password": PASSWORD})
    assert login.status_code == 200


def test_login_any_type_and_specific_type(client, make_student):
    account = make_student(email="lena@uni.example.edu")

    response = client.post("/api/auth/login", json={"email": account["email"], "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["type"] == "student"
    assert response.json()["expires_in"] > 0

    wrong_type = client.post("/api/auth/login/client", json={"email": account["email"], "password": PASSWORD})
    assert wrong_type.status_code == 401
    assert wrong_type.json()["code"] == "INVALID_CREDENTIALS"

    right_type = client.post("/api/auth/login/student", json={"email": account["email"], "password": PASSWORD})
    assert right_type.status_code == 200


def test_login_failures_lock_out(client, make_student):
    account = make_student(email="lock@uni.example.edu")

    for _ in range(5):
        response = client.post("/api/auth/login", json={"email": account["email"], "password": "Wrong0ne!"})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    locked = client.post("/api/auth/login", json={"email": account["email"], "password": PASSWORD})
    assert locked.status_code == 429
    assert locked.json()["code"] == "RATE_LIMITED"
    assert "retry-after" in locked.headers


def test_forwarded_for_does_not_reset_lockout(client, make_student):
    account = make_student(email="spoof@uni.example.edu")

    statuses = []
    for i in range(7):
        response = client.post("/api/auth/login", json={"email": account["email"], "password": "Wrong0ne!"},
                               headers={"X-Forwarded-For": f"10.0.0.{i}"})
        statuses.append(response.status_code)
    assert statuses[:5] == [401] * 5
    assert statuses[5:] == [429, 429]


def test_client_ip_honours_trusted_proxy_count(monkeypatch):
    request = Request({
        "type": "http",
        "headers": [(b"x-forwarded-for", b"6.6.6.6, 203.0.113.7, 10.1.1.1")],
        "client": ("10.1.1.2", 5000),
    })
    assert security.client_ip(request) == "10.1.1.2"

    monkeypatch.setattr(security.settings, "trusted_proxy_count", 1)
    assert security.client_ip(request) == "10.1.1.1"
    monkeypatch.setattr(security.settings, "trusted_proxy_count", 2)
    assert security.client_ip(request) == "203.0.113.7"
    monkeypatch.setattr(security.settings, "trusted_proxy_count", 5)
    assert security.client_ip(request) == "6.6.6.6"


def test_successful_login_clears_failures(client, make_student):
    account = make_student(email="reset@uni.example.edu")
    for _ in range(4):
        client.post("/api/auth/login", json={"email": account["email"], "password": "Wrong0ne!"})
    assert client.post("/api/auth/login", json={"email": account["email"], "password": PASSWORD}).status_code == 200
    for _ in range(4):
        client.post("/api/auth/login", json={"email": account["email"], "password": "Wrong0ne!"})
    assert client.post("/api/auth/login", json={"email": account["email"], "password": PASSWORD}).status_code == 200


def test_token_errors(client):
    missing = client.get("/api/auth/verify")
    assert missing.status_code == 401
    assert missing.json()["code"] == "TOKEN_MISSING"

    invalid = client.get("/api/auth/verify", headers=bearer("not-a-token"))
    assert invalid.status_code == 401
    assert invalid.json()["code"] == "TOKEN_INVALID"


def test_cookie_authentication_and_refresh(client):
    response = client.post("/api/auth/register/student", json={
        "email": "cookie@uni.example.edu", "password": PASSWORD, "full_name": "Cookie Monster",
    })
    assert response.status_code == 201

    # no Authorization header: the auth_token cookie is used
    assert client.get("/api/auth/verify").status_code == 200

    refreshed = client.post("/api/auth/refresh")
    assert refreshed.status_code == 200
    assert refreshed.json()["user"]["email"] == "cookie@uni.example.edu"

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/verify").status_code == 401
    missing = client.post("/api/auth/refresh")
    assert missing.status_code == 401
    assert missing.json()["code"] == "REFRESH_TOKEN_MISSING"


def test_archived_user_token_rejected(client, student, admin):
    archive = client.post(f"/api/admin/users/student/{student['id']}/archive", headers=admin["headers"])
    assert archive.status_code == 200

    response = client.get("/api/auth/verify", headers=student["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "ACCOUNT_ARCHIVED"


def test_profile_hides_password_hash(client, client_user):
    response = client.get("/api/auth/profile", headers=client_user["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["user_type"] == "client"
    assert data["profile"]["organization_name"] == "Acme Logistics"
    assert "password_hash" not in data["profile"]


def test_role_guard(client, student):
    response = client.post("/api/projects", json=project_payload(), headers=student["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"
