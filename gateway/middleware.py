"""Host routing middleware.

Runs before every handler and decides, from the classified host alone,
whether a path may be served on that host:
- root / www      -> everything moves to the HQ host
- HQ              -> school-only areas bounce to /platform
- school host     -> /platform bounces to the school home page
- unknown host    -> 404, except for the auth endpoints
Requests that pass carry x-tenant-slug / x-host-type headers and
request.state.host for downstream handlers.
"""

import logging

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.errors import UnknownHost
from gateway.hosts import HostKind, classify_request, request_proto

logger = logging.getLogger(__name__)

STATIC_PREFIXES = ("/_next/static", "/_next/image", "/static", "/public", "/favicon.ico")
EXEMPT_PATHS = ("/health",)
TENANT_ONLY_PREFIXES = ("/admin", "/teacher", "/portal", "/invoices")
HQ_ONLY_PREFIXES = ("/platform",)
AUTH_PREFIXES = ("/auth", "/api/auth")

TENANT_SLUG_HEADER = "x-tenant-slug"
HOST_TYPE_HEADER = "x-host-type"


def path_has_prefix(path: str, prefixes: tuple[str, ...]) -> bool:
    """Prefix match on whole path segments: /admin matches /admin/x, not /administer."""
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)


class HostRoutingMiddleware(BaseHTTPMiddleware):
    """Enforce which path namespaces are reachable from which host class."""

    def __init__(self, app, root_domain: str):
        super().__init__(app)
        self.root_domain = root_domain
        self.hq_host = f"app.{root_domain}"

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path_has_prefix(path, STATIC_PREFIXES) or path in EXEMPT_PATHS:
            return await call_next(request)

        host = classify_request(request, self.root_domain)
        proto = request_proto(request, host.host)

        if host.kind is HostKind.ROOT:
            query = f"?{request.url.query}" if request.url.query else ""
            logger.info(f"[ROUTING] {host.host}{path} -> HQ host")
            return RedirectResponse(url=f"{proto}://{self.hq_host}{path}{query}", status_code=307)

        if host.kind is HostKind.HQ and path_has_prefix(path, TENANT_ONLY_PREFIXES):
            logger.info(f"[ROUTING] School-only path {path} on HQ host -> /platform")
            return RedirectResponse(url=f"{proto}://{host.host}/platform", status_code=307)

        if host.kind is HostKind.TENANT and path_has_prefix(path, HQ_ONLY_PREFIXES):
            logger.info(f"[ROUTING] HQ-only path {path} on {host.host} -> /")
            return RedirectResponse(url=f"{proto}://{host.host}/", status_code=307)

        if host.kind is HostKind.UNKNOWN and not path_has_prefix(path, AUTH_PREFIXES):
            logger.info(f"[ROUTING] Unknown host rejected: {host.host or '(empty)'}")
            return UnknownHost().to_response()

        # Replace any client-supplied context headers with our own.
        headers = [
            (name, value) for name, value in request.scope["headers"]
            if name not in (TENANT_SLUG_HEADER.encode(), HOST_TYPE_HEADER.encode())
        ]
        headers.append((HOST_TYPE_HEADER.encode(), host.kind.value.encode()))
        if host.slug:
            headers.append((TENANT_SLUG_HEADER.encode(), host.slug.encode("latin-1")))
        request.scope["headers"] = headers
        request.state.host = host

        response = await call_next(request)
        if host.slug:
            response.headers[TENANT_SLUG_HEADER] = host.slug
        return response
