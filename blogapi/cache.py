import json
import logging

import redis.asyncio as redis

from blogapi.config import settings

logger = logging.getLogger(__name__)

HOME_LIST_PREFIX = "articles:home:"


def home_feed_key(page: int, page_size: int, sort: str) -> str:
    return f"{HOME_LIST_PREFIX}{page}:{page_size}:{sort}"


class CacheManager:
    """
    Redis cache for pages of the public article feed.

    A missing or failing Redis never breaks a request: lookups report a miss,
    stores and invalidations are dropped with a debug log, and the feed is
    served from the database.  Session tokens live in ``blogapi.credentials``.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    async def connect(self) -> None:
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Feed cache connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Feed cache unreachable, serving from the database: %s", exc)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get_feed_page(self, key: str) -> dict | None:
        """Cached feed page for *key*, or None on a miss."""
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Feed cache read failed for %r: %s", key, exc)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def store_feed_page(self, key: str, page: dict) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(page, default=str), ex=settings.CACHE_TTL_LIST)
        except Exception as exc:
            logger.debug("Feed cache write failed for %r: %s", key, exc)

    async def invalidate_home_feed(self) -> None:
        """
        Drop every cached feed page.  Feed items carry like and collect
        counters, so article writes and toggles both call this.
        """
        if self._redis is None:
            return
        try:
            stale = [key async for key in self._redis.scan_iter(match=f"{HOME_LIST_PREFIX}*")]
            if stale:
                await self._redis.delete(*stale)
                logger.debug("Dropped %d cached feed page(s)", len(stale))
        except Exception as exc:
            logger.debug("Feed cache invalidation failed: %s", exc)


cache = CacheManager()
