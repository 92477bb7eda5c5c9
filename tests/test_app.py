def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


def test_request_id_and_security_headers(client):
    response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert "strict-transport-security" not in response.headers

    generated = client.get("/api/health")
    assert generated.headers["x-request-id"]


def test_error_shape(client):
    response = client.get("/api/projects/9999", headers={"X-Request-ID": "req-404"})
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "PROJECT_NOT_FOUND"
    assert body["error"] == "Project not found"
    assert body["request_id"] == "req-404"
    assert "timestamp" in body


def test_unknown_route_uses_error_shape(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_query_validation_errors(client):
    response = client.get("/api/projects", params={"limit": 0})
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "limit"


def test_root_without_frontend(client):
    response = client.get("/")
    assert response.status_code == 200
