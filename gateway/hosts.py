"""Host classification for tenant routing.

Every request is classified exactly once from its forwarded host header:
- classpoint.ng / www.classpoint.ng (root, marketing)
- app.classpoint.ng (HQ, platform operators)
- {school}.classpoint.ng (tenant)
- localhost / {school}.localhost (development)
Anything else is UNKNOWN. Classification never touches the network or storage.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from starlette.requests import Request


class HostKind(str, Enum):
    ROOT = "root"
    HQ = "hq"
    TENANT = "tenant"
    LOCALHOST_ROOT = "localhost"
    LOCALHOST_TENANT = "localhost-tenant"
    UNKNOWN = "unknown"

    @property
    def is_localhost(self) -> bool:
        return self in (HostKind.LOCALHOST_ROOT, HostKind.LOCALHOST_TENANT)


@dataclass(frozen=True)
class ClassifiedHost:
    host: str
    kind: HostKind
    slug: Optional[str] = None


def normalize_host(value: Optional[str]) -> str:
    """Lower-case a host header value and strip any port.

    Forwarded headers may carry a comma-separated chain; the first entry is
    the host the client originally asked for.
    """
    if not value:
        return ""
    first = value.split(",")[0].strip()
    return first.split(":")[0].lower()


def is_localhost(host: str) -> bool:
    return host == "localhost" or host.endswith(".localhost")


def classify_host(raw_host: Optional[str], root_domain: str) -> ClassifiedHost:
    """Map a host header value onto exactly one HostKind."""
    host = normalize_host(raw_host)
    root = root_domain.lower().strip(".")

    if not host:
        return ClassifiedHost(host, HostKind.UNKNOWN)

    if host == "localhost":
        return ClassifiedHost(host, HostKind.LOCALHOST_ROOT)
    if host.endswith(".localhost"):
        return ClassifiedHost(host, HostKind.LOCALHOST_TENANT, host[: -len(".localhost")])

    if not root:
        return ClassifiedHost(host, HostKind.UNKNOWN)

    if host == root or host == f"www.{root}":
        return ClassifiedHost(host, HostKind.ROOT)
    if host == f"app.{root}":
        return ClassifiedHost(host, HostKind.HQ)
    if host.endswith(f".{root}"):
        return ClassifiedHost(host, HostKind.TENANT, host[: -len(root) - 1])

    return ClassifiedHost(host, HostKind.UNKNOWN)


def request_host(request: Request) -> str:
    """Normalized host the client addressed, preferring X-Forwarded-Host."""
    forwarded = request.headers.get("x-forwarded-host")
    return normalize_host(forwarded or request.headers.get("host"))


def classify_request(request: Request, root_domain: str) -> ClassifiedHost:
    return classify_host(request_host(request), root_domain)


def request_proto(request: Request, host: str) -> str:
    """Scheme the client used; localhost defaults to plain http."""
    forwarded = request.headers.get("x-forwarded-proto")
    if forwarded:
        return forwarded.split(",")[0].strip().lower()
    return "http" if is_localhost(host) else "https"


def is_allowed_school_host(current_host: str, target_host: str, root_domain: str) -> bool:
    """Whether a password login may redirect to target_host.

    From a localhost request only localhost variants are allowed; otherwise
    the root domain itself or any subdomain of it. Tenant existence is not
    checked here.
    """
    if not target_host:
        return False
    if is_localhost(current_host):
        return is_localhost(target_host)
    root = root_domain.lower().strip(".")
    if not root:
        return False
    if target_host == root:
        return True
    return target_host.endswith(f".{root}")
