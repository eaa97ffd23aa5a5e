"""Direct email/password login (POST /api/auth/login).

Used by the in-app login forms. Credentials go straight to the identity
provider's password grant; on success the same session cookie group as the
hosted flow is written, and the caller may be sent on to another school host
under the same root domain.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from config import Settings
from gateway.claims import Claims, decode_unverified, default_route
from gateway.cookies import cookie_scope, set_session_cookies
from gateway.errors import AuthFailed, BadRequest, ConfigMissing, GatewayError, InvalidCredentials
from gateway.flow import safe_next
from gateway.hosts import ClassifiedHost, classify_request, is_allowed_school_host, normalize_host, request_proto
from gateway.provider import IdentityProviderClient, IncompleteAuthentication, ProviderError, TokenSet

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS = "Email and password are required."
INCOMPLETE_AUTHENTICATION = "Authentication failed."


@dataclass(frozen=True)
class PasswordLogin:
    redirect_to: str
    tokens: TokenSet
    claims: Optional[Claims]


def _string(body: dict, key: str) -> str:
    value = body.get(key)
    return value if isinstance(value, str) else ""


class PasswordAuthenticator:
    def __init__(self, settings: Settings, provider: IdentityProviderClient):
        self.settings = settings
        self.provider = provider

    def redirect_target(self, host: ClassifiedHost, proto: str, route: str, school_host: str) -> str:
        """Absolute URL on school_host when it is an allowed other host, else route."""
        target = normalize_host(school_host)
        if target and target != host.host and is_allowed_school_host(host.host, target, self.settings.root_domain):
            return f"{proto}://{target}{route}"
        return route

    async def authenticate(self, host: ClassifiedHost, proto: str, body: Any) -> PasswordLogin:
        """Validate credentials with the provider.

        Raises:
            BadRequest: Missing username or password
            InvalidCredentials: Provider rejected the credentials
            AuthFailed: Any other provider failure
        """
        if not isinstance(body, dict):
            raise BadRequest("body is not an object", MISSING_CREDENTIALS)

        username = _string(body, "username").strip()
        password = _string(body, "password")
        if not username or not password:
            raise BadRequest("missing username or password", MISSING_CREDENTIALS)

        try:
            tokens = await self.provider.password_auth(username, password)
        except IncompleteAuthentication as e:
            logger.warning(f"[LOGIN] Password grant returned no tokens on {host.host}: {e.error_type}")
            raise AuthFailed(str(e), INCOMPLETE_AUTHENTICATION)
        except ProviderError as e:
            if e.error_type == "NotAuthorizedException":
                logger.info(f"[LOGIN] Credentials rejected on {host.host}")
                raise InvalidCredentials(str(e))
            logger.warning(f"[LOGIN] Password grant failed on {host.host}: {e.error_type}")
            raise AuthFailed(str(e))

        claims = decode_unverified(tokens.id_token)
        route = safe_next(_string(body, "next"), allow_root=False) or default_route(host, claims)
        redirect_to = self.redirect_target(host, proto, route, _string(body, "schoolHost"))

        logger.info(f"[LOGIN] Authenticated {claims.sub if claims else 'unknown'} on {host.host}")
        return PasswordLogin(redirect_to=redirect_to, tokens=tokens, claims=claims)

    async def respond(self, request: Request) -> Response:
        if not self.settings.client_id:
            logger.error("[LOGIN] COGNITO_CLIENT_ID is not set")
            return ConfigMissing().to_response()

        host = classify_request(request, self.settings.root_domain)
        proto = request_proto(request, host.host)

        try:
            body = await request.json()
        except ValueError:
            body = None

        try:
            login = await self.authenticate(host, proto, body)
        except GatewayError as e:
            return e.to_response()

        response = JSONResponse({"ok": True, "redirectTo": login.redirect_to})
        set_session_cookies(response, login.tokens, login.claims, cookie_scope(host, self.settings.root_domain))
        return response
