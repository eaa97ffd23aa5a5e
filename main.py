"""ClassPoint Gateway - authentication and host routing.

This service sits in front of every ClassPoint host:
- classpoint.ng / www.classpoint.ng (redirected to HQ)
- app.classpoint.ng (HQ, platform operators)
- {school}.classpoint.ng (one per school)

It handles:
- Host routing and tenant context headers (gateway/middleware.py)
- Hosted login with PKCE, callback and logout (gateway/flow.py)
- Email/password login (gateway/password.py)
- Session verification against the Cognito key set (gateway/session.py)
"""
import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, load_settings
from gateway.endpoints import router as auth_router
from gateway.errors import GatewayError
from gateway.jwks import KeySetCache
from gateway.middleware import HOST_TYPE_HEADER, TENANT_SLUG_HEADER, HostRoutingMiddleware
from gateway.provider import IdentityProviderClient
from gateway.session import SessionVerifier
from logging_config import setup_logging

VERSION = "0.3.0"

logger = logging.getLogger(__name__)


def cors_origin_regex(root_domain: str) -> str:
    """Any subdomain of the root domain, or any localhost variant."""
    root = re.escape(root_domain)
    return rf"https://([a-z0-9-]+\.)*{root}|http://([a-z0-9-]+\.)?localhost(:\d+)?"


def create_app(settings: Settings = None, provider: IdentityProviderClient = None) -> FastAPI:
    """Build the gateway application.

    Args:
        settings: Configuration; read from the environment when omitted.
        provider: Identity provider client; built from settings when omitted.
    """
    settings = settings or load_settings()
    provider = provider or IdentityProviderClient(settings)
    key_cache = KeySetCache(provider.fetch_jwks, ttl=settings.jwks_cache_ttl)
    verifier = SessionVerifier(settings, key_cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await provider.aclose()

    app = FastAPI(
        title="ClassPoint Gateway",
        description="Authentication and host routing for ClassPoint school subdomains",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.provider = provider
    app.state.verifier = verifier

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=cors_origin_regex(settings.root_domain),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    # Added last so it runs first.
    app.add_middleware(HostRoutingMiddleware, root_domain=settings.root_domain)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.warning(f"[AUTH] {exc.__class__.__name__} on {request.url.path}: {exc.detail}")
        return exc.to_response()

    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers."""
        return {"status": "healthy", "service": "classpoint-gateway"}

    @app.get("/")
    async def root(request: Request):
        """Service info with the tenant context attached by the routing middleware."""
        return {
            "name": "ClassPoint Gateway",
            "version": VERSION,
            "host": {
                "type": request.headers.get(HOST_TYPE_HEADER),
                "tenant": request.headers.get(TENANT_SLUG_HEADER),
            },
            "endpoints": {
                "login": "/auth/login",
                "callback": "/auth/callback",
                "logout": "/auth/logout",
                "session": "/api/auth/session",
                "password_login": "/api/auth/login",
            },
        }

    logger.info(f"[STARTUP] Gateway ready for root domain {settings.root_domain}")
    if settings.missing():
        logger.warning(f"[STARTUP] Missing configuration: {', '.join(settings.missing())}")

    return app


def load_environment() -> None:
    """Load .env from the working directory when present."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)


def build_default_app() -> FastAPI:
    load_environment()
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_format)
    return create_app(settings)


# ============== Main Entry Point ==============

if __name__ == "__main__":
    import uvicorn
    load_environment()
    default_settings = load_settings()
    uvicorn.run(
        "main:build_default_app",
        factory=True,
        host=default_settings.host,
        port=default_settings.port,
    )
