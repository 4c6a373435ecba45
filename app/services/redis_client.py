# app/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class FastRedisClient:
    """Pooled async Redis client used for short-lived markers (callback idempotency)."""

    def __init__(self, url: str | None = None):
        self.url = url or settings.REDIS_URL
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Redis client initialized", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def claim_once(self, key: str, ttl_s: int) -> bool | None:
        """
        SET NX with a TTL.

        Returns True when this caller created the key, False when it already
        existed, None when Redis could not be reached.
        """
        try:
            await self._ensure_initialized()
            result = await self.client.set(key, "1", nx=True, ex=ttl_s)
            return bool(result)
        except Exception as e:
            logger.error("Redis SET NX failed", key=key[:60], error=str(e))
            return None

    async def delete(self, key: str) -> bool:
        try:
            await self._ensure_initialized()
            result = await self.client.delete(key)
            return result > 0
        except Exception as e:
            logger.error("Redis DELETE failed", key=key[:60], error=str(e))
            return False


# Global instance
fast_redis = FastRedisClient()
