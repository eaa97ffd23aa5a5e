"""Authorization code + PKCE login flow and logout.

Flow:
1. GET /auth/login    - store state, verifier and destination in short-lived
                        cookies, redirect to the hosted UI
2. GET /auth/callback - check state, exchange code + verifier for tokens,
                        write the session cookies, redirect to the app
3. GET /auth/logout   - clear the session cookies, redirect to hosted logout

No server-side storage: the flow cookies are the only state carried across
the redirect round trip, and they are cleared on every callback outcome.
"""

import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi.responses import RedirectResponse
from starlette.requests import Request
from starlette.responses import Response

from config import Settings
from gateway.claims import Claims, decode_unverified, default_route
from gateway.cookies import (
    OAUTH_STATE_COOKIE,
    PKCE_VERIFIER_COOKIE,
    POST_LOGIN_COOKIE,
    clear_flow_cookies,
    clear_session_cookies,
    cookie_scope,
    set_flow_cookie,
    set_session_cookies,
)
from gateway.errors import BadRequest, ConfigMissing, ExchangeFailed, GatewayError, InvalidState
from gateway.hosts import ClassifiedHost, classify_request, request_proto
from gateway.pkce import generate_pkce, generate_state
from gateway.provider import IdentityProviderClient, ProviderError, TokenSet

logger = logging.getLogger(__name__)


def safe_next(value: Optional[str], allow_root: bool = True) -> str:
    """Return value if it is a same-origin absolute path, else ""."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return ""
    if not allow_root and value == "/":
        return ""
    return value


def callback_uri(host: str, proto: str) -> str:
    return f"{proto}://{host}/auth/callback"


def app_url(host: str, proto: str, path: str) -> str:
    """Absolute URL on host, or the bare path when the host is unknown."""
    if not host:
        return path
    return f"{proto}://{host}{path}"


# ============== Authorization Redirect ==============

def build_login_response(request: Request, settings: Settings,
                         provider: IdentityProviderClient) -> Response:
    """Start the authorization code flow for the requesting host."""
    if not settings.client_id:
        logger.error("[AUTH] Login requested but COGNITO_CLIENT_ID is not set")
        return ConfigMissing().to_response()

    host = classify_request(request, settings.root_domain)
    proto = request_proto(request, host.host)
    scope = cookie_scope(host, settings.root_domain)

    pkce = generate_pkce()
    state = generate_state()
    destination = safe_next(request.query_params.get("next"))

    url = provider.authorize_url(callback_uri(host.host, proto), state, pkce.challenge)
    response = RedirectResponse(url=url, status_code=302)
    set_flow_cookie(response, OAUTH_STATE_COOKIE, state, scope)
    set_flow_cookie(response, PKCE_VERIFIER_COOKIE, pkce.verifier, scope)
    if destination:
        set_flow_cookie(response, POST_LOGIN_COOKIE, destination, scope)

    logger.info(f"[AUTH] Redirecting {host.host} to hosted login")
    return response


# ============== Callback ==============

class CallbackState(str, Enum):
    INIT = "init"
    CALLBACK_PENDING = "callback_pending"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class CallbackResult:
    state: CallbackState = CallbackState.INIT
    tokens: Optional[TokenSet] = None
    claims: Optional[Claims] = None
    destination: Optional[str] = None
    error: Optional[GatewayError] = None

    def fail(self, error: GatewayError) -> "CallbackResult":
        self.state = CallbackState.FAILED
        self.error = error
        return self


class CallbackExchanger:
    """Runs the callback state machine INIT -> CALLBACK_PENDING -> AUTHENTICATED | FAILED."""

    def __init__(self, settings: Settings, provider: IdentityProviderClient):
        self.settings = settings
        self.provider = provider

    async def run(self, request: Request, host: ClassifiedHost, proto: str) -> CallbackResult:
        result = CallbackResult()

        # 1. Configuration
        if not self.settings.client_id:
            logger.error("[CALLBACK] COGNITO_CLIENT_ID is not set")
            return result.fail(ConfigMissing("client id missing"))

        # 2. Query parameters
        code = request.query_params.get("code") or ""
        state = request.query_params.get("state") or ""
        if not code or not state:
            return result.fail(BadRequest("missing code or state", "Missing code or state"))

        # 3. State and verifier cookies
        stored_state = request.cookies.get(OAUTH_STATE_COOKIE) or ""
        verifier = request.cookies.get(PKCE_VERIFIER_COOKIE) or ""
        if not stored_state or not hmac.compare_digest(stored_state.encode(), state.encode()) or not verifier:
            logger.warning(f"[CALLBACK] Invalid OAuth state on {host.host} (possible replay or CSRF)")
            return result.fail(InvalidState("state mismatch"))

        # 4. Code exchange
        result.state = CallbackState.CALLBACK_PENDING
        try:
            tokens = await self.provider.exchange_code(code, verifier, callback_uri(host.host, proto))
        except ProviderError as e:
            logger.warning(f"[CALLBACK] Token exchange failed on {host.host}: {e}")
            return result.fail(ExchangeFailed(str(e)))

        claims = decode_unverified(tokens.id_token)
        destination = safe_next(request.cookies.get(POST_LOGIN_COOKIE)) or default_route(host, claims)

        result.state = CallbackState.AUTHENTICATED
        result.tokens = tokens
        result.claims = claims
        result.destination = destination
        logger.info(f"[CALLBACK] Authenticated {claims.sub if claims else 'unknown'} on {host.host}")
        return result

    async def respond(self, request: Request) -> Response:
        host = classify_request(request, self.settings.root_domain)
        proto = request_proto(request, host.host)
        scope = cookie_scope(host, self.settings.root_domain)

        result = await self.run(request, host, proto)

        if result.state is CallbackState.AUTHENTICATED:
            response = RedirectResponse(url=app_url(host.host, proto, result.destination), status_code=302)
            set_session_cookies(response, result.tokens, result.claims, scope)
        else:
            response = result.error.to_response()

        clear_flow_cookies(response, scope)
        return response


# ============== Logout ==============

def build_logout_response(request: Request, settings: Settings,
                          provider: IdentityProviderClient) -> Response:
    """Clear the session cookie group and hand off to hosted logout."""
    host = classify_request(request, settings.root_domain)
    proto = request_proto(request, host.host)
    scope = cookie_scope(host, settings.root_domain)

    response = RedirectResponse(url=provider.logout_url(f"{proto}://{host.host}/"), status_code=302)
    clear_session_cookies(response, scope)
    logger.info(f"[LOGOUT] Session cleared on {host.host}")
    return response
