"""ID token verification against the identity provider's key set."""

import logging
from typing import Optional

import jwt

from config import Settings
from gateway.claims import Claims
from gateway.errors import InvalidToken
from gateway.jwks import KeySetCache
from gateway.provider import ProviderError

logger = logging.getLogger(__name__)

ALGORITHMS = ["RS256"]


class SessionVerifier:
    """Validate ID tokens: signature, issuer, audience, expiry, token_use.

    The key set cache is owned here and shared by every request served by
    the process.
    """

    def __init__(self, settings: Settings, key_cache: KeySetCache):
        self.settings = settings
        self.key_cache = key_cache

    @property
    def issuer(self) -> Optional[str]:
        return self.settings.issuer

    async def verify(self, token: str) -> Claims:
        """Verify an ID token and return its claims.

        Raises:
            InvalidToken: For any verification failure. The reason is logged,
                never returned to the caller.
        """
        if not self.issuer:
            logger.error("[SESSION] Issuer not configured; cannot verify tokens")
            raise InvalidToken("issuer not configured")

        try:
            header = jwt.get_unverified_header(token)
            signing_key = await self.key_cache.get_signing_key(header.get("kid"))

            audience = self.settings.client_id or None
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=ALGORITHMS,
                audience=audience,
                issuer=self.issuer,
                options={
                    "require": ["exp", "iss"],
                    "verify_aud": audience is not None,
                },
            )
        except jwt.ExpiredSignatureError:
            logger.info("[SESSION] Token rejected: expired")
            raise InvalidToken("expired")
        except jwt.InvalidAudienceError:
            logger.warning(f"[SESSION] Token rejected: invalid audience (expected {self.settings.client_id})")
            raise InvalidToken("audience")
        except jwt.InvalidIssuerError:
            logger.warning(f"[SESSION] Token rejected: invalid issuer (expected {self.issuer})")
            raise InvalidToken("issuer")
        except jwt.PyJWTError as e:
            logger.warning(f"[SESSION] Token rejected: {e}")
            raise InvalidToken(str(e))
        except ProviderError as e:
            logger.error(f"[JWKS] Could not load signing keys: {e}")
            raise InvalidToken("jwks unavailable")

        claims = Claims.from_payload(payload)
        if claims.token_use is not None and claims.token_use != "id":
            logger.warning(f"[SESSION] Token rejected: token_use={claims.token_use}")
            raise InvalidToken("token_use")

        return claims
