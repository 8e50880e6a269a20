"""Identity, session credential and error-shape tests."""

from conftest import API, login, signup


def test_signup_returns_session_token(client):
    actor = signup(client, "joao@example.com", "Joao Pereira")

    resp = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {actor.token}"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "joao@example.com"
    assert body["data"]["membership"]["clinics"] == []
    assert body["data"]["membership"]["current_clinic"] is None


def test_duplicate_email_rejected_case_insensitively(client):
    signup(client, "ana@example.com")

    resp = client.post(
        f"{API}/auth/signup",
        json={"email": "ANA@example.com", "password": "secret123", "full_name": "Ana"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "A user with this email already exists"}


def test_login_with_wrong_password_is_unauthenticated(client):
    signup(client, "bia@example.com")

    resp = client.post(f"{API}/auth/login", json={"email": "bia@example.com", "password": "wrong-pass"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid email or password"}

    assert login(client, "bia@example.com").token


def test_missing_and_malformed_credentials(client):
    resp = client.get(f"{API}/patients-api")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing authorization header"}

    resp = client.get(f"{API}/patients-api", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert "error" in resp.json()


def test_unknown_api_token_is_unauthenticated(client):
    resp = client.get(f"{API}/patients-api", headers={"Authorization": "Bearer " + "ab" * 32})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired API token"}


def test_validation_errors_use_400_and_error_body(client):
    resp = client.post(f"{API}/auth/signup", json={"email": "not-an-email", "password": "x", "full_name": ""})
    assert resp.status_code == 400
    assert set(resp.json()) == {"error"}


def test_unknown_route_and_wrong_method(client, admin):
    resp = client.get(f"{API}/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}

    resp = client.patch(f"{API}/patients-api/00000000-0000-0000-0000-000000000000", headers=admin.headers, json={})
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method Not Allowed"}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "healthy"
