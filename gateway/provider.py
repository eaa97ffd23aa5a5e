"""Client for the Cognito identity provider.

Covers the three network calls the gateway makes:
- authorization code exchange at the hosted UI token endpoint
- direct password grant (InitiateAuth / USER_PASSWORD_AUTH)
- JWKS download for signature verification
plus the hosted UI authorize/logout URLs. Every call has an explicit timeout
and is never retried here.
"""

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from config import Settings

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "openid email profile"
DEFAULT_EXPIRES_IN = 3600
INITIATE_AUTH_TARGET = "AWSCognitoIdentityProviderService.InitiateAuth"


class ProviderError(Exception):
    """Identity provider call failed.

    error_type is the provider's error code (for Cognito the exception name,
    e.g. NotAuthorizedException) or a local code such as "network".
    """

    def __init__(self, error_type: str, message: str = "", status_code: Optional[int] = None):
        super().__init__(f"{error_type}: {message}" if message else error_type)
        self.error_type = error_type
        self.message = message
        self.status_code = status_code


class IncompleteAuthentication(ProviderError):
    """The provider answered without issuing tokens, e.g. with a challenge."""


@dataclass(frozen=True)
class TokenSet:
    id_token: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: int = DEFAULT_EXPIRES_IN


def compute_secret_hash(username: str, client_id: str, client_secret: str) -> str:
    """Cognito SECRET_HASH: base64(HMAC-SHA256(client_secret, username + client_id))."""
    digest = hmac.new(
        client_secret.encode(),
        f"{username}{client_id}".encode(),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode()


def _expires_in(value) -> int:
    try:
        expires_in = int(value)
    except (TypeError, ValueError):
        return DEFAULT_EXPIRES_IN
    return expires_in if expires_in > 0 else DEFAULT_EXPIRES_IN


def _error_type(body: dict) -> str:
    # Cognito returns "__type": "NotAuthorizedException" or a namespaced
    # "com.amazonaws...#NotAuthorizedException".
    raw = str(body.get("__type") or body.get("error") or "http_error")
    return raw.rsplit("#", 1)[-1]


class IdentityProviderClient:
    """Async Cognito client bound to one set of settings."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.idp_timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ============== Hosted UI URLs ==============

    def authorize_url(self, redirect_uri: str, state: str, code_challenge: str) -> str:
        params = {
            "client_id": self.settings.client_id,
            "response_type": "code",
            "scope": DEFAULT_SCOPE,
            "redirect_uri": redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.settings.cognito_domain}/oauth2/authorize?{urlencode(params)}"

    def logout_url(self, logout_uri: str) -> str:
        params = {}
        if self.settings.client_id:
            params["client_id"] = self.settings.client_id
        params["logout_uri"] = logout_uri
        return f"{self.settings.cognito_domain}/logout?{urlencode(params)}"

    # ============== Token Endpoint ==============

    async def exchange_code(self, code: str, verifier: str, redirect_uri: str) -> TokenSet:
        """Exchange an authorization code plus PKCE verifier for tokens."""
        data = {
            "grant_type": "authorization_code",
            "client_id": self.settings.client_id,
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": verifier,
        }
        auth = None
        if self.settings.client_secret:
            auth = httpx.BasicAuth(self.settings.client_id, self.settings.client_secret)

        try:
            response = await self._client.post(
                f"{self.settings.cognito_domain}/oauth2/token",
                data=data,
                auth=auth,
            )
        except httpx.HTTPError as e:
            raise ProviderError("network", str(e)) from e

        body = self._json(response)
        if not response.is_success:
            raise ProviderError(_error_type(body), str(body.get("error_description", "")),
                                response.status_code)
        if not body.get("id_token"):
            raise ProviderError("missing_id_token", status_code=response.status_code)

        return TokenSet(
            id_token=body["id_token"],
            access_token=body.get("access_token"),
            refresh_token=body.get("refresh_token"),
            expires_in=_expires_in(body.get("expires_in")),
        )

    # ============== Password Grant ==============

    async def password_auth(self, username: str, password: str) -> TokenSet:
        """Authenticate with USER_PASSWORD_AUTH."""
        parameters = {"USERNAME": username, "PASSWORD": password}
        if self.settings.client_secret:
            parameters["SECRET_HASH"] = compute_secret_hash(
                username, self.settings.client_id, self.settings.client_secret
            )
        payload = {
            "AuthFlow": "USER_PASSWORD_AUTH",
            "ClientId": self.settings.client_id,
            "AuthParameters": parameters,
        }

        try:
            response = await self._client.post(
                self.settings.idp_endpoint,
                content=json.dumps(payload),
                headers={
                    "Content-Type": "application/x-amz-json-1.1",
                    "X-Amz-Target": INITIATE_AUTH_TARGET,
                },
            )
        except httpx.HTTPError as e:
            raise ProviderError("network", str(e)) from e

        body = self._json(response)
        if not response.is_success:
            raise ProviderError(_error_type(body), str(body.get("message", "")),
                                response.status_code)

        result = body.get("AuthenticationResult") or {}
        if not result.get("IdToken"):
            # A challenge (e.g. NEW_PASSWORD_REQUIRED) cannot be completed here.
            raise IncompleteAuthentication(str(body.get("ChallengeName") or "missing_id_token"),
                                           status_code=response.status_code)

        return TokenSet(
            id_token=result["IdToken"],
            access_token=result.get("AccessToken"),
            refresh_token=result.get("RefreshToken"),
            expires_in=_expires_in(result.get("ExpiresIn")),
        )

    # ============== Key Set ==============

    async def fetch_jwks(self) -> dict:
        jwks_url = self.settings.jwks_url
        if not jwks_url:
            raise ProviderError("not_configured", "issuer is not configured")
        try:
            response = await self._client.get(jwks_url)
        except httpx.HTTPError as e:
            raise ProviderError("network", str(e)) from e
        body = self._json(response)
        if not response.is_success or not isinstance(body.get("keys"), list):
            raise ProviderError("invalid_jwks", status_code=response.status_code)
        logger.info(f"[JWKS] Fetched {len(body['keys'])} signing keys from {jwks_url}")
        return body

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
