import pytest

from api import create_app
from models.user import ADMIN_ROLE, User
from services.errors import ConfigurationError
from tests.conftest import NEW_PASSWORD, PASSWORD

REGISTER_BODY = {
    "email": "kim@example.com",
    "password": PASSWORD,
    "confirm_password": PASSWORD,
    "display_name": "Kim",
}


def register(client, **overrides):
    return client.post("/api/v1/auth/register", json={**REGISTER_BODY, **overrides})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session(client):
    """Tokens of a registered user."""
    return register(client).get_json()["data"]


@pytest.fixture
def admin(client, storage):
    register(client, email="admin@example.com", display_name="Admin")
    with storage.transaction():
        user = storage.get_session().query(User).filter(User.email == "admin@example.com").one()
        user.roles = ["User", ADMIN_ROLE]
    response = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    return response.get_json()["data"]


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_register_returns_tokens(client):
    response = register(client)

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["user"]["email"] == "kim@example.com"
    assert "password_hash" not in data["user"]


def test_auth_routes_are_mounted_under_auth(app):
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert {"/api/v1/auth/register", "/api/v1/auth/login", "/api/v1/auth/me"} <= rules
    assert "/api/v1/login" not in rules


def test_register_conflict_and_validation_envelopes(client, session):
    conflict = register(client)
    assert conflict.status_code == 409
    assert conflict.get_json()["error"] == "RESOURCE_CONFLICT"

    invalid = register(client, email="lee@example.com", password="short", confirm_password="short")
    body = invalid.get_json()
    assert invalid.status_code == 422
    assert body["error"] == "VALIDATION_FAILED"
    assert body["status"] == 422
    assert "password" in body["details"]


def test_login_failure_is_401_with_challenge(client, session):
    unknown = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    wrong = client.post("/api/v1/auth/login", json={"email": "kim@example.com", "password": "Wr0ng!Password"})

    for response in (unknown, wrong):
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
    assert unknown.get_json() == wrong.get_json()


def test_refresh_rotation_over_http(client, session):
    first = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert first.status_code == 200
    rotated = first.get_json()["data"]["refresh_token"]

    replay = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert replay.status_code == 401
    assert replay.get_json()["error"] == "UNAUTHORIZED"

    valid = client.post("/api/v1/auth/validate-token", json={"refresh_token": rotated})
    assert valid.get_json()["data"]["valid"] is True


def test_refresh_requires_a_token(client):
    response = client.post("/api/v1/auth/refresh", json={})
    assert response.status_code == 422


def test_logout_then_logout_all(client, session):
    other = client.post("/api/v1/auth/login", json={"email": "kim@example.com", "password": PASSWORD})
    other = other.get_json()["data"]

    logout = client.post("/api/v1/auth/logout", json={"refresh_token": session["refresh_token"]})
    again = client.post("/api/v1/auth/logout", json={"refresh_token": session["refresh_token"]})
    assert logout.status_code == again.status_code == 200

    everywhere = client.post("/api/v1/auth/logout-all", headers=bearer(other["access_token"]))
    assert everywhere.status_code == 200
    assert everywhere.get_json()["data"]["revoked_count"] == 1


def test_protected_routes_need_a_bearer_token(client):
    for response in (
        client.get("/api/v1/auth/me"),
        client.get("/api/v1/auth/me", headers=bearer("garbage")),
        client.post("/api/v1/auth/logout-all"),
    ):
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHORIZED"


def test_me(client, session):
    response = client.get("/api/v1/auth/me", headers=bearer(session["access_token"]))
    assert response.status_code == 200
    assert response.get_json()["data"]["roles"] == ["User"]


def test_change_password_over_http(client, session):
    response = client.post(
        "/api/v1/auth/change-password",
        headers=bearer(session["access_token"]),
        json={"current_password": PASSWORD, "new_password": NEW_PASSWORD, "confirm_new_password": NEW_PASSWORD},
    )
    assert response.status_code == 200

    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert refresh.status_code == 401
    login = client.post("/api/v1/auth/login", json={"email": "kim@example.com", "password": NEW_PASSWORD})
    assert login.status_code == 200


def test_profile_and_email_updates(client, session):
    headers = bearer(session["access_token"])

    profile = client.put("/api/v1/users/me/profile", headers=headers, json={"display_name": "Kim K"})
    assert profile.status_code == 200
    assert profile.get_json()["data"]["display_name"] == "Kim K"

    email = client.put("/api/v1/users/me/email", headers=headers, json={"new_email": "Kim.K@example.com"})
    assert email.status_code == 200
    assert email.get_json()["data"]["email"] == "kim.k@example.com"


def test_list_and_get_users(client, session):
    headers = bearer(session["access_token"])
    listing = client.get("/api/v1/users?page=1&limit=5", headers=headers)
    body = listing.get_json()
    assert listing.status_code == 200
    assert body["meta"] == {"page": 1, "limit": 5, "total": 1}

    user_id = session["user"]["id"]
    assert client.get(f"/api/v1/users/{user_id}", headers=headers).get_json()["data"]["id"] == user_id
    missing = client.get("/api/v1/users/does-not-exist", headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "RESOURCE_NOT_FOUND"


def test_user_directory_needs_a_bearer_token(client, session):
    user_id = session["user"]["id"]
    for response in (client.get("/api/v1/users"), client.get(f"/api/v1/users/{user_id}")):
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.get_json()["error"] == "UNAUTHORIZED"


def test_search_and_statistics_are_admin_only(client, session, admin):
    headers = bearer(admin["access_token"])
    for url in ("/api/v1/users/search?q=kim", "/api/v1/users/statistics"):
        assert client.get(url).status_code == 401
        assert client.get(url, headers=bearer(session["access_token"])).status_code == 403

    found = client.get("/api/v1/users/search?q=KIM", headers=headers)
    assert found.status_code == 200
    assert [u["email"] for u in found.get_json()["data"]] == ["kim@example.com"]
    assert found.get_json()["meta"]["total"] == 1

    assert client.get("/api/v1/users/search", headers=headers).status_code == 422

    client.post(f"/api/v1/users/{session['user']['id']}/deactivate", headers=headers)
    stats = client.get("/api/v1/users/statistics", headers=headers)
    assert stats.get_json()["data"] == {"total_users": 2, "active_users": 1, "inactive_users": 1}


def test_admin_actions(client, session, admin):
    user_id = session["user"]["id"]
    headers = bearer(admin["access_token"])

    forbidden = client.post(f"/api/v1/users/{user_id}/deactivate", headers=bearer(session["access_token"]))
    assert forbidden.status_code == 403

    verified = client.post(f"/api/v1/users/{user_id}/verify-email", headers=headers)
    assert verified.get_json()["data"]["is_email_verified"] is True
    again = client.post(f"/api/v1/users/{user_id}/verify-email", headers=headers)
    assert again.status_code == 400
    assert again.get_json()["error"] == "EMAIL_ALREADY_VERIFIED"

    deactivated = client.post(f"/api/v1/users/{user_id}/deactivate", headers=headers)
    assert deactivated.get_json()["data"]["is_active"] is False
    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert refresh.status_code == 401

    reactivated = client.post(f"/api/v1/users/{user_id}/reactivate", headers=headers)
    assert reactivated.get_json()["data"]["is_active"] is True


def test_purge_expired_tokens_command(app):
    result = app.test_cli_runner().invoke(args=["purge-expired-tokens"])
    assert result.exit_code == 0
    assert "Removed 0 expired refresh tokens" in result.output


def test_short_secret_stops_startup(storage, monkeypatch):
    monkeypatch.setattr("api.config.TestingConfig.JWT_SECRET", "short")
    with pytest.raises(ConfigurationError):
        create_app("testing", storage=storage)
