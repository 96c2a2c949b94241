import json
from typing import Any, Optional

import redis.asyncio as redis
import structlog

from app.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """JSON key-value store on Redis, used for dashboard preferences.

    Keys are namespaced with ``key_prefix`` so several deployments can share
    one Redis database. Read and write failures are logged and reported as a
    missing value or a ``False`` write, never raised.
    """

    def __init__(self, url: Optional[str] = None, key_prefix: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.key_prefix = (
            settings.REDIS_KEY_PREFIX if key_prefix is None else key_prefix
        )
        self._client: Optional[redis.Redis] = None

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def init_redis(self):
        """Open the connection pool and check the server answers."""
        try:
            self._client = redis.Redis.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
            )
            await self._client.ping()
            logger.info("Redis connection established", url=self.url)

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            self._client = None
            raise

    async def get_redis(self) -> redis.Redis:
        if self._client is None:
            await self.init_redis()
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Store ``value`` as JSON, optionally expiring after ``expire`` seconds."""
        try:
            client = await self.get_redis()
            return bool(await client.set(self._key(key), json.dumps(value), ex=expire))
        except Exception as e:
            logger.error("Redis SET error", key=key, exc_info=e)
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Decoded JSON value, or None when missing, unreadable or unreachable."""
        try:
            client = await self.get_redis()
            value = await client.get(self._key(key))
        except Exception as e:
            logger.error("Redis GET error", key=key, exc_info=e)
            return None

        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Stored value is not JSON", key=key)
            return None


# Global Redis client instance
redis_client = RedisClient()
