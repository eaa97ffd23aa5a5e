"""Process-wide cache of the identity provider's signing keys.

Keys are fetched lazily on first use and kept for the cache TTL so token
verification needs no network round trip per request. Reads take no lock;
refreshes are serialized so concurrent misses trigger a single download.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import jwt
from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_CACHE_KEY = "jwks"


class KeySetCache:
    """TTL cache for a JWKS document with refresh-on-unknown-kid.

    Attributes:
        ttl: Seconds a fetched key set stays valid
        min_refresh_interval: Minimum seconds between refreshes triggered by
            an unknown kid, so forged kids cannot hammer the JWKS endpoint
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[dict]],
        ttl: int = 3600,
        min_refresh_interval: float = 30.0,
    ):
        self._fetch = fetch
        self.ttl = ttl
        self.min_refresh_interval = min_refresh_interval
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl)
        self._lock = asyncio.Lock()
        self._last_refresh: Optional[float] = None

    async def get_signing_key(self, kid: Optional[str]) -> jwt.PyJWK:
        """Return the key for kid, refreshing the key set once on a miss.

        Raises:
            jwt.PyJWKClientError: No key matches kid
            ProviderError: The key set could not be downloaded
        """
        key_set = self._cache.get(_CACHE_KEY)
        if key_set is not None:
            key = _find_key(key_set, kid)
            if key is not None:
                return key

        async with self._lock:
            current = self._cache.get(_CACHE_KEY)
            if current is not None and current is not key_set:
                # Another request refreshed while we waited.
                key = _find_key(current, kid)
                if key is not None:
                    return key
                key_set = current
            elif current is None or self._may_refresh():
                key_set = await self._refresh()
            else:
                key_set = current

        key = _find_key(key_set, kid)
        if key is None:
            raise jwt.PyJWKClientError(f'Unable to find a signing key that matches: "{kid}"')
        return key

    def _may_refresh(self) -> bool:
        if self._last_refresh is None:
            return True
        return time.monotonic() - self._last_refresh >= self.min_refresh_interval

    async def _refresh(self) -> jwt.PyJWKSet:
        data = await self._fetch()
        key_set = jwt.PyJWKSet.from_dict(data)
        self._cache[_CACHE_KEY] = key_set
        self._last_refresh = time.monotonic()
        logger.debug(f"[JWKS] Key set cached for {self.ttl}s")
        return key_set

    def clear(self) -> None:
        self._cache.clear()
        self._last_refresh = None


def _find_key(key_set: jwt.PyJWKSet, kid: Optional[str]) -> Optional[jwt.PyJWK]:
    for key in key_set.keys:
        if key.key_id == kid:
            return key
    return None
