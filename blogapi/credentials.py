import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from blogapi.config import settings
from blogapi.exceptions import CredentialStoreUnavailable

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Redis-backed registry of live session tokens.

    A token is usable only while its key exists; the key is written at login
    with the token's TTL and deleted on logout or password change.  Unlike
    ``CacheManager`` this store fails closed: any Redis error is raised as
    ``CredentialStoreUnavailable`` instead of being read as a miss.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Credential store connected: %s", settings.REDIS_URL)
        except RedisError as exc:
            logger.warning("Credential store ping failed, logins will be rejected: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            raise CredentialStoreUnavailable()
        return self._redis

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client().set(key, value, ex=ttl)
        except RedisError as exc:
            raise CredentialStoreUnavailable() from exc

    async def get(self, key: str) -> str | None:
        try:
            return await self._client().get(key)
        except RedisError as exc:
            raise CredentialStoreUnavailable() from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(key)
        except RedisError as exc:
            raise CredentialStoreUnavailable() from exc


# Module-level singleton shared across all request handlers.
credential_store = CredentialStore()
