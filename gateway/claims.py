"""Identity claims and role-based landing routes.

Claims are built once, by a single decode function, and are immutable.
Raw token payloads never travel past this module.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import jwt

from gateway.hosts import ClassifiedHost, HostKind

logger = logging.getLogger(__name__)


class Role(str, Enum):
    PARENT = "PARENT"
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    BURSAR = "BURSAR"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    APP_ADMIN = "APP_ADMIN"


@dataclass(frozen=True)
class Claims:
    """Recognized identity-provider claims.

    Attributes:
        sub: Subject id
        name: Display name
        email: Email address
        phone_number: Phone number
        username: Identity-provider username (cognito:username)
        groups: Group names (cognito:groups)
        school_id: Tenant identifier (custom:schoolId)
        token_use: "id" or "access"
        exp: Expiry as a unix timestamp
    """

    sub: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    username: Optional[str] = None
    groups: tuple[str, ...] = field(default_factory=tuple)
    school_id: Optional[str] = None
    token_use: Optional[str] = None
    exp: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Claims":
        groups = payload.get("cognito:groups")
        if isinstance(groups, str):
            groups = [groups]
        elif not isinstance(groups, list):
            groups = []

        exp = payload.get("exp")
        return cls(
            sub=_str_or_none(payload.get("sub")),
            name=_str_or_none(payload.get("name")),
            email=_str_or_none(payload.get("email")),
            phone_number=_str_or_none(payload.get("phone_number")),
            username=_str_or_none(payload.get("cognito:username")),
            groups=tuple(str(g) for g in groups),
            school_id=_str_or_none(payload.get("custom:schoolId") or payload.get("schoolId")),
            token_use=_str_or_none(payload.get("token_use")),
            exp=int(exp) if isinstance(exp, (int, float)) and not isinstance(exp, bool) else None,
        )

    @property
    def roles(self) -> frozenset[Role]:
        known = {role.value for role in Role}
        return frozenset(Role(g) for g in self.groups if g in known)

    def to_public_dict(self) -> dict[str, Any]:
        """Recognized claims under the provider's claim names, absent ones omitted."""
        data = {
            "sub": self.sub,
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "cognito:username": self.username,
            "cognito:groups": list(self.groups) if self.groups else None,
            "custom:schoolId": self.school_id,
        }
        return {key: value for key, value in data.items() if value is not None}


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def decode_unverified(token: str) -> Optional[Claims]:
    """Read a JWT's claim segment without checking its signature.

    Only for choosing where to send the user next. Trust decisions go
    through SessionVerifier.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.warning(f"[AUTH] Could not decode ID token claims: {e}")
        return None
    if not isinstance(payload, dict):
        return None
    return Claims.from_payload(payload)


def default_route(host: ClassifiedHost, claims: Optional[Claims]) -> str:
    """Landing path for a freshly authenticated user, first match wins."""
    roles = claims.roles if claims else frozenset()
    if Role.PARENT in roles or Role.STUDENT in roles:
        return "/portal"
    if Role.TEACHER in roles:
        return "/teacher"
    if Role.BURSAR in roles or Role.SCHOOL_ADMIN in roles:
        return "/admin"
    if Role.APP_ADMIN in roles:
        return "/platform" if host.kind is HostKind.HQ else "/admin"
    return "/"
