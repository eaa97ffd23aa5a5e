"""Cookie scoping and the session cookie group.

Session cookies are shared across every subdomain of the root domain so a
login on one school host (or HQ) is valid after a cross-tenant redirect.
Local development uses host-only, non-secure cookies.
"""

import base64
import json
from dataclasses import dataclass
from typing import Optional

from starlette.responses import Response

from gateway.claims import Claims
from gateway.hosts import ClassifiedHost

ID_TOKEN_COOKIE = "cp.id_token"
ACCESS_TOKEN_COOKIE = "cp.access_token"
REFRESH_TOKEN_COOKIE = "cp.refresh_token"
SESSION_COOKIE = "cp.session"

OAUTH_STATE_COOKIE = "cp.oauth_state"
PKCE_VERIFIER_COOKIE = "cp.pkce_verifier"
POST_LOGIN_COOKIE = "cp.post_login"

SESSION_COOKIES = (ID_TOKEN_COOKIE, ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, SESSION_COOKIE)
FLOW_COOKIES = (OAUTH_STATE_COOKIE, PKCE_VERIFIER_COOKIE, POST_LOGIN_COOKIE)

REFRESH_TOKEN_TTL = 30 * 24 * 60 * 60  # 30 days
FLOW_COOKIE_TTL = 10 * 60  # 10 minutes


@dataclass(frozen=True)
class CookieScope:
    domain: Optional[str]
    secure: bool


def cookie_scope(host: ClassifiedHost, root_domain: str) -> CookieScope:
    """Derive the Domain attribute and Secure flag for a classified host."""
    if host.kind.is_localhost:
        return CookieScope(domain=None, secure=False)
    root = root_domain.lower().strip(".")
    if root and (host.host == root or host.host.endswith(f".{root}")):
        return CookieScope(domain=f".{root}", secure=True)
    return CookieScope(domain=None, secure=True)


def encode_session_claims(claims: Claims) -> str:
    """base64url (unpadded) JSON of the display claims."""
    raw = json.dumps(claims.to_public_dict(), separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _set(response: Response, name: str, value: str, max_age: int, scope: CookieScope,
         httponly: bool = True) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        path="/",
        domain=scope.domain,
        secure=scope.secure,
        httponly=httponly,
        samesite="lax",
    )


def set_session_cookies(response: Response, tokens, claims: Optional[Claims], scope: CookieScope) -> None:
    """Write the session cookie group for a freshly issued token set."""
    _set(response, ID_TOKEN_COOKIE, tokens.id_token, tokens.expires_in, scope)
    if tokens.access_token:
        _set(response, ACCESS_TOKEN_COOKIE, tokens.access_token, tokens.expires_in, scope)
    if tokens.refresh_token:
        _set(response, REFRESH_TOKEN_COOKIE, tokens.refresh_token, REFRESH_TOKEN_TTL, scope)
    if claims is not None:
        _set(response, SESSION_COOKIE, encode_session_claims(claims), REFRESH_TOKEN_TTL, scope,
             httponly=False)


def clear_session_cookies(response: Response, scope: CookieScope) -> None:
    for name in SESSION_COOKIES:
        _set(response, name, "", 0, scope, httponly=name != SESSION_COOKIE)


def set_flow_cookie(response: Response, name: str, value: str, scope: CookieScope) -> None:
    # Flow cookies stay host-only: the callback always returns to the same host.
    _set(response, name, value, FLOW_COOKIE_TTL, CookieScope(domain=None, secure=scope.secure))


def clear_flow_cookies(response: Response, scope: CookieScope) -> None:
    for name in FLOW_COOKIES:
        _set(response, name, "", 0, CookieScope(domain=None, secure=scope.secure))
