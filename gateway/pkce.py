"""PKCE verifier/challenge pairs and OAuth state tokens."""

import base64
import hashlib
import secrets
from dataclasses import dataclass

VERIFIER_BYTES = 32
STATE_BYTES = 16


def base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


def challenge_for(verifier: str) -> str:
    """S256 code challenge for a verifier."""
    return base64url(hashlib.sha256(verifier.encode()).digest())


def generate_pkce() -> PKCEPair:
    verifier = base64url(secrets.token_bytes(VERIFIER_BYTES))
    return PKCEPair(verifier=verifier, challenge=challenge_for(verifier))


def generate_state() -> str:
    return base64url(secrets.token_bytes(STATE_BYTES))
