"""Tests for POST /api/auth/login."""

import json

import httpx
import pytest

from gateway.cookies import SESSION_COOKIES
from gateway.provider import compute_secret_hash

from conftest import CLIENT_ID, make_settings, set_cookies, unsigned_id_token


def authenticated_as(fake_cognito, *groups):
    fake_cognito.initiate_response = (200, {
        "AuthenticationResult": {
            "IdToken": unsigned_id_token(**{"cognito:groups": list(groups)}),
            "AccessToken": "access-abc",
            "RefreshToken": "refresh-abc",
            "ExpiresIn": 3600,
        }
    })


def credentials(**extra) -> dict:
    body = {"username": "john@school.test", "password": "correct horse"}
    body.update(extra)
    return body


class TestPasswordLogin:
    def test_teacher_lands_on_teacher_area(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "TEACHER")
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())

        assert response.status_code == 200
        assert response.json() == {"ok": True, "redirectTo": "/teacher"}
        cookies = set_cookies(response)
        assert set(cookies) == set(SESSION_COOKIES)
        assert all("Domain=.classpoint.ng" in header for header in cookies.values())

    def test_next_overrides_default_route(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "TEACHER")
        response = client_for("harbor.classpoint.ng").post(
            "/api/auth/login", json=credentials(next="/teacher/classes")
        )
        assert response.json()["redirectTo"] == "/teacher/classes"

    def test_unsafe_next_ignored(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "PARENT")
        response = client_for("harbor.classpoint.ng").post(
            "/api/auth/login", json=credentials(next="//evil.com")
        )
        assert response.json()["redirectTo"] == "/portal"

    def test_invalid_credentials(self, client_for, fake_cognito):
        fake_cognito.initiate_response = (400, {
            "__type": "NotAuthorizedException",
            "message": "Incorrect username or password.",
        })
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password."}
        assert set_cookies(response) == {}

    @pytest.mark.parametrize("provider_response", [
        (400, {"__type": "UserNotConfirmedException", "message": "User is not confirmed."}),
        (500, {"__type": "InternalErrorException"}),
    ])
    def test_other_failures(self, client_for, fake_cognito, provider_response):
        fake_cognito.initiate_response = provider_response
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())

        assert response.status_code == 401
        assert response.json() == {"error": "Unable to sign in."}

    def test_provider_timeout(self, client_for, fake_cognito):
        fake_cognito.raise_error = httpx.ReadTimeout("timed out")
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())

        assert response.status_code == 401
        assert response.json() == {"error": "Unable to sign in."}
        assert set_cookies(response) == {}

    @pytest.mark.parametrize("provider_response", [
        (200, {"ChallengeName": "NEW_PASSWORD_REQUIRED", "Session": "abc"}),
        (200, {"AuthenticationResult": {"AccessToken": "access-abc"}}),
    ])
    def test_no_id_token_issued(self, client_for, fake_cognito, provider_response):
        fake_cognito.initiate_response = provider_response
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication failed."}
        assert set_cookies(response) == {}

    @pytest.mark.parametrize("body", [
        {"username": "", "password": "pw"},
        {"username": "john", "password": ""},
        {"username": "john"},
        {"username": 42, "password": "pw"},
        {},
        [],
    ])
    def test_missing_credentials(self, client_for, fake_cognito, body):
        response = client_for("harbor.classpoint.ng").post("/api/auth/login", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Email and password are required."}
        assert fake_cognito.requests == []

    def test_malformed_json(self, client_for, fake_cognito):
        response = client_for("harbor.classpoint.ng").post(
            "/api/auth/login", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert fake_cognito.requests == []

    def test_missing_client_id(self, client_for, fake_cognito):
        response = client_for("harbor.classpoint.ng", settings=make_settings(client_id="")).post(
            "/api/auth/login", json=credentials()
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Authentication is not configured"}
        assert fake_cognito.requests == []

    def test_secret_hash_for_confidential_client(self, client_for, fake_cognito):
        settings = make_settings(client_secret="s3cret")
        response = client_for("harbor.classpoint.ng", settings=settings).post(
            "/api/auth/login", json=credentials()
        )

        assert response.status_code == 200
        payload = json.loads(fake_cognito.requests[0].content)
        assert payload["AuthParameters"]["SECRET_HASH"] == compute_secret_hash(
            "john@school.test", CLIENT_ID, "s3cret"
        )

    def test_public_client_sends_no_secret_hash(self, client_for, fake_cognito):
        client_for("harbor.classpoint.ng").post("/api/auth/login", json=credentials())
        payload = json.loads(fake_cognito.requests[0].content)
        assert "SECRET_HASH" not in payload["AuthParameters"]


class TestCrossHostRedirect:
    def test_hq_login_sends_teacher_to_school(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "TEACHER")
        response = client_for("app.classpoint.ng").post(
            "/api/auth/login", json=credentials(schoolHost="harbor.classpoint.ng")
        )
        assert response.json()["redirectTo"] == "https://harbor.classpoint.ng/teacher"

    def test_same_host_stays_relative(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "TEACHER")
        response = client_for("harbor.classpoint.ng").post(
            "/api/auth/login", json=credentials(schoolHost="Harbor.ClassPoint.ng")
        )
        assert response.json()["redirectTo"] == "/teacher"

    @pytest.mark.parametrize("school_host", ["evil.com", "classpoint.ng.evil.com", "harbor.localhost"])
    def test_foreign_host_stays_relative(self, client_for, fake_cognito, school_host):
        authenticated_as(fake_cognito, "PARENT")
        response = client_for("app.classpoint.ng").post(
            "/api/auth/login", json=credentials(schoolHost=school_host)
        )
        assert response.json()["redirectTo"] == "/portal"

    def test_localhost_to_localhost_tenant(self, client_for, fake_cognito):
        authenticated_as(fake_cognito, "PARENT")
        response = client_for("localhost").post(
            "/api/auth/login", json=credentials(schoolHost="harbor.localhost")
        )

        assert response.json()["redirectTo"] == "http://harbor.localhost/portal"
        for header in set_cookies(response).values():
            assert "Domain" not in header
            assert "Secure" not in header
