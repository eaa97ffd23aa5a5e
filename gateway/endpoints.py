"""Authentication endpoints.

This module contains all auth-related endpoints:
- Hosted login flow (/auth/login, /auth/callback, /auth/logout)
- Session check (/api/auth/session)
- Password login (/api/auth/login)
- Public OAuth metadata (/api/auth/config)
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gateway.cookies import ID_TOKEN_COOKIE
from gateway.errors import InvalidToken
from gateway.flow import CallbackExchanger, build_login_response, build_logout_response
from gateway.password import PasswordAuthenticator

logger = logging.getLogger(__name__)

# Router for auth endpoints. Handlers read settings, provider and verifier
# from app.state, set by main.create_app.
router = APIRouter(tags=["auth"])


# ============== Hosted Login Flow ==============

@router.get("/auth/login")
async def login(request: Request):
    """Redirect to the hosted login page (accepts ?next=/path)."""
    state = request.app.state
    return build_login_response(request, state.settings, state.provider)


@router.get("/auth/callback")
async def callback(request: Request):
    """Complete the authorization code flow."""
    state = request.app.state
    return await CallbackExchanger(state.settings, state.provider).respond(request)


@router.get("/auth/logout")
async def logout(request: Request):
    """Clear the session and redirect to hosted logout."""
    state = request.app.state
    return build_logout_response(request, state.settings, state.provider)


# ============== API ==============

@router.get("/api/auth/session")
async def session(request: Request):
    """Report whether the caller holds a valid ID token."""
    token = request.cookies.get(ID_TOKEN_COOKIE)
    if not token:
        return JSONResponse({"authenticated": False})

    try:
        claims = await request.app.state.verifier.verify(token)
    except InvalidToken:
        return JSONResponse({"authenticated": False}, status_code=401)

    return JSONResponse({
        "authenticated": True,
        "expiresAt": claims.exp,
        "claims": claims.to_public_dict(),
    })


@router.post("/api/auth/login")
async def password_login(request: Request):
    """Email/password login. Body: {username, password, next?, schoolHost?}."""
    state = request.app.state
    return await PasswordAuthenticator(state.settings, state.provider).respond(request)


@router.get("/api/auth/config")
async def auth_config(request: Request):
    """Non-secret OAuth metadata for frontends."""
    settings = request.app.state.settings
    return {
        "root_domain": settings.root_domain,
        "hq_host": settings.hq_host,
        "hosted_ui": settings.cognito_domain,
        "issuer": settings.issuer,
        "client_configured": bool(settings.client_id),
        "code_challenge_methods_supported": ["S256"],
    }
