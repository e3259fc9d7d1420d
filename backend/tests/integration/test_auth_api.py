"""Integration tests for authentication endpoints."""

from __future__ import annotations

from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.assertions import assert_json_keys, assert_problem
from tests.helpers.http import build_url, json_headers

SIGN_UP = {
    "name": "Api User",
    "email": "api.user@example.com",
    "password": "Str0ng!pass",
    "whatsapp_number": "+201111111111",
    "grades": ["10"],
}


def _sign_in(client, user):
    return client.post(
        build_url("/auth/sign-in"), json={"email": user.email, "password": DEFAULT_PASSWORD}
    )


def test_sign_up_sets_cookies_and_unlocks_profile(client) -> None:
    resp = client.post(build_url("/auth/sign-up"), json=SIGN_UP)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["message"] == "User signed up successfully"
    assert_json_keys(body["data"], {"access_token", "refresh_token", "expires_in"})
    assert client.get_cookie("access_token").value == body["data"]["access_token"]
    assert client.get_cookie("refresh_token").http_only

    profile = client.get(build_url("/users/profile"))
    assert profile.status_code == 200
    data = profile.get_json()["data"]
    assert (data["email"], data["role"]) == ("api.user@example.com", "USER")
    assert data["sessionId"]


def test_sign_up_validation_and_conflict(client) -> None:
    resp = client.post(build_url("/auth/sign-up"), json={**SIGN_UP, "password": "weak"})
    problem = assert_problem(resp, 422)
    assert "password" in problem["details"]["errors"]

    UserFactory(email=SIGN_UP["email"])
    resp = client.post(build_url("/auth/sign-up"), json=SIGN_UP)
    assert_problem(resp, 409, "User already exists")


def test_sign_in_with_bad_credentials(client, db) -> None:
    user = UserFactory()
    resp = client.post(
        build_url("/auth/sign-in"), json={"email": user.email, "password": "Wr0ng!pass"}
    )
    assert_problem(resp, 401, "Invalid credentials")


def test_profile_requires_a_token(client) -> None:
    assert_problem(client.get(build_url("/users/profile")), 401)
    resp = client.get(build_url("/users/profile"), headers=json_headers("not-a-jwt"))
    assert_problem(resp, 401)


def test_bearer_header_is_accepted(app, db, services) -> None:
    user = UserFactory()
    token = services.auth.sign_in(user.id).access_token

    resp = app.test_client().get(build_url("/users/profile"), headers=json_headers(token))

    assert resp.status_code == 200
    assert resp.get_json()["data"]["id"] == user.id


def test_refresh_rotates_the_cookie(app, client, db) -> None:
    user = UserFactory()
    _sign_in(client, user)
    old_refresh = client.get_cookie("refresh_token").value

    resp = client.post(build_url("/auth/refresh"))

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Token refreshed successfully"
    assert client.get_cookie("refresh_token").value != old_refresh

    replay = app.test_client().post(build_url("/auth/refresh"), headers=json_headers(old_refresh))
    assert_problem(replay, 401, "Invalid refresh token")


def test_refresh_without_a_token(client) -> None:
    assert_problem(client.post(build_url("/auth/refresh")), 401, "Invalid refresh token")


def test_sign_out_clears_cookies_and_ends_the_session(client, db) -> None:
    user = UserFactory()
    _sign_in(client, user)
    refresh_token = client.get_cookie("refresh_token").value

    resp = client.post(build_url("/auth/sign-out"))

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "User signed out successfully"
    assert client.get_cookie("access_token") is None
    assert client.get_cookie("refresh_token") is None
    resp = client.post(build_url("/auth/refresh"), headers=json_headers(refresh_token))
    assert_problem(resp, 401)


def test_sessions_listing_and_sign_out_everywhere(app, client, db) -> None:
    user = UserFactory()
    _sign_in(app.test_client(), user)
    _sign_in(client, user)

    listed = client.get(build_url("/auth/sessions"))
    assert listed.status_code == 200
    sessions = listed.get_json()["data"]
    assert len(sessions) == 2
    assert [s["current"] for s in sessions].count(True) == 1

    resp = client.delete(build_url("/auth/sessions"))
    assert resp.get_json()["data"] == {"removed": 2}
    assert client.get_cookie("access_token") is None
