from abc import ABC, abstractmethod
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger

from src.adspace.core.errors import JwksFetchError
from src.adspace.runtime.context import get_config


class JWKSCache(ABC):
    @abstractmethod
    def get_jwks(self, jwks_url: str) -> dict[str, Any]:
        """
        Get the cached JWKS for the given key set URL.

        Args:
            jwks_url: The key set endpoint

        Returns:
            JWKS dictionary, empty when nothing is cached
        """
        raise NotImplementedError

    @abstractmethod
    def set_jwks(self, jwks_url: str, jwks: dict[str, Any]) -> None:
        """
        Cache the JWKS fetched from the given key set URL.

        Args:
            jwks_url: The key set endpoint
            jwks: The JWKS dictionary to cache
        """
        raise NotImplementedError

    @abstractmethod
    def clear_jwks_cache(self) -> None:
        """Clear the JWKS cache."""
        raise NotImplementedError


class JWKSCacheInMemory(JWKSCache):
    def __init__(self, maxsize: int = 10, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else get_config().auth.jwks_cache_ttl_seconds
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get_jwks(self, jwks_url: str) -> dict[str, Any]:
        return self._cache.get(jwks_url, {})

    def set_jwks(self, jwks_url: str, jwks: dict[str, Any]) -> None:
        self._cache[jwks_url] = jwks

    def clear_jwks_cache(self) -> None:
        self._cache.clear()


class JwksService:
    """Fetches public key sets over HTTP, reusing cached copies."""

    def __init__(self, cache: JWKSCache) -> None:
        self._cache = cache

    async def fetch_jwks(
        self,
        jwks_url: str,
        *,
        headers: dict[str, str] | None = None,
        force_refresh: bool = False,
    ) -> dict[str, Any]:
        """Return the key set published at ``jwks_url``.

        Raises:
            JwksFetchError: the endpoint failed, timed out or returned no key set
        """
        if not force_refresh:
            jwks = self._cache.get_jwks(jwks_url)
            if jwks:
                return jwks

        timeout = get_config().clerk.http_timeout_seconds
        logger.debug("Fetching JWKS from {}", jwks_url)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                if headers:
                    resp = await client.get(jwks_url, headers=headers)
                else:
                    resp = await client.get(jwks_url)
                resp.raise_for_status()
                jwks = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise JwksFetchError(f"Failed to fetch JWKS from {jwks_url}: {exc}") from exc

        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise JwksFetchError(f"Response from {jwks_url} is not a JWK set")

        self._cache.set_jwks(jwks_url, jwks)
        return jwks

    def clear(self) -> None:
        self._cache.clear_jwks_cache()
