"""Shared fixtures: settings, a fake Cognito, RSA signing keys, test clients."""

import json
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jwt.algorithms import RSAAlgorithm

from config import Settings
from gateway.provider import IdentityProviderClient

ROOT = "classpoint.ng"
CLIENT_ID = "test-client-id"
USER_POOL_ID = "us-east-1_TESTPOOL"
ISSUER = f"https://cognito-idp.us-east-1.amazonaws.com/{USER_POOL_ID}"


def make_settings(**overrides) -> Settings:
    data = {
        "region": "us-east-1",
        "client_id": CLIENT_ID,
        "user_pool_id": USER_POOL_ID,
        "root_domain": ROOT,
        "cognito_domain": f"https://auth.{ROOT}",
    }
    data.update(overrides)
    return Settings(data)


class SigningKey:
    """RSA key pair published under a kid."""

    def __init__(self, kid: str):
        self.kid = kid
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def jwk(self) -> dict:
        data = json.loads(RSAAlgorithm.to_jwk(self.private_key.public_key()))
        data.update({"kid": self.kid, "alg": "RS256", "use": "sig"})
        return data

    def sign(self, **claims) -> str:
        now = int(time.time())
        payload = {
            "sub": "user-123",
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "iat": now,
            "exp": now + 3600,
            "token_use": "id",
        }
        payload.update(claims)
        payload = {key: value for key, value in payload.items() if value is not None}
        return jwt.encode(payload, self.private_key, algorithm="RS256", headers={"kid": self.kid})


def unsigned_id_token(**claims) -> str:
    """An ID token good enough for unverified claim decoding."""
    payload = {"sub": "user-123", "token_use": "id", "exp": int(time.time()) + 3600}
    payload.update(claims)
    return jwt.encode(payload, "not-the-real-key", algorithm="HS256")


class FakeCognito:
    """httpx transport standing in for the hosted UI, the IdP API and JWKS."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_response = (200, {
            "id_token": unsigned_id_token(),
            "access_token": "access-abc",
            "refresh_token": "refresh-abc",
            "expires_in": 3600,
            "token_type": "Bearer",
        })
        self.initiate_response = (200, {
            "AuthenticationResult": {
                "IdToken": unsigned_id_token(),
                "AccessToken": "access-abc",
                "RefreshToken": "refresh-abc",
                "ExpiresIn": 3600,
                "TokenType": "Bearer",
            }
        })
        self.jwks = {"keys": []}
        self.raise_error: Exception = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if request.url.path == "/oauth2/token":
            status, body = self.token_response
        elif request.headers.get("x-amz-target", "").endswith("InitiateAuth"):
            status, body = self.initiate_response
        elif request.url.path.endswith("/.well-known/jwks.json"):
            status, body = 200, self.jwks
        else:
            status, body = 404, {"error": "not_found"}
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_cognito() -> FakeCognito:
    return FakeCognito()


@pytest.fixture
def signing_key() -> SigningKey:
    return SigningKey("key-1")


@pytest.fixture
def make_app(fake_cognito):
    """Build an app wired to the fake Cognito."""
    from main import create_app

    def _make(settings: Settings = None):
        settings = settings or make_settings()
        provider = IdentityProviderClient(settings, transport=fake_cognito.transport())
        return create_app(settings, provider)

    return _make


@pytest.fixture
def client_for(make_app):
    """TestClient addressing a given host; redirects are not followed."""

    def _client(host: str, settings: Settings = None, scheme: str = None) -> TestClient:
        if scheme is None:
            scheme = "http" if host == "localhost" or host.endswith(".localhost") else "https"
        return TestClient(make_app(settings), base_url=f"{scheme}://{host}", follow_redirects=False)

    return _client


def set_cookies(response) -> dict[str, str]:
    """Set-Cookie headers of a response keyed by cookie name."""
    # httpx responses expose get_list, Starlette responses getlist
    get_list = getattr(response.headers, "get_list", None) or response.headers.getlist
    cookies = {}
    for header in get_list("set-cookie"):
        name = header.split("=", 1)[0]
        cookies[name] = header
    return cookies


def cookie_value(header: str) -> str:
    return header.split(";", 1)[0].split("=", 1)[1].strip('"')
