"""
Cache Store - Two-tier key/value cache.

Redis is the primary tier. An in-process map is the fallback tier and
transparently takes over writes and reads whenever Redis is disabled,
unreachable or misconfigured.

Every operation is best-effort: cache failures are logged and never
raised to callers as business errors.
"""

import asyncio
import fnmatch
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from token_pricing.config import RedisConfig
from token_pricing.exceptions import CacheError
from token_pricing.models import CacheEntry, CacheTier


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Redis refuses writes with these markers when persistence is broken.
MISCONF_MARKERS = ("MISCONF", "stop-writes-on-bgsave-error")


class CacheStore:
    """
    Generic two-tier cache with automatic in-process fallback.

    Features:
    - Redis primary tier with connection backoff
    - Memory fallback tier with absolute expiry
    - Cache-aside get_or_set with fire-and-forget write-back
    - No business semantics

    Usage:
        cache = CacheStore(RedisConfig(enabled=True, host="localhost"))
        await cache.connect()

        await cache.set("token_price_BTC", {...}, ttl_seconds=300)
        value = await cache.get("token_price_BTC")
    """

    RECONNECT_DELAY = 5.0  # seconds to stay on the memory tier after a connection error

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._config = config or RedisConfig()
        self._client = client
        self._enabled = client is not None or self._config.enabled
        self._connected = False
        self._unavailable_until = 0.0
        self._closed = False

        # Fallback tier
        self._memory: dict[str, CacheEntry] = {}

        # Fire-and-forget writes
        self._pending_writes: set[asyncio.Task] = set()

        if self._enabled and self._client is None:
            self._client = aioredis.Redis(
                host=self._config.host,
                port=self._config.port,
                password=self._config.password,
                db=self._config.db,
                socket_connect_timeout=self._config.connect_timeout,
                socket_timeout=self._config.command_timeout,
                decode_responses=True,
            )
        elif not self._enabled:
            logger.info("Redis configuration not found, running with memory cache only")

    # ─────────────────────────────────────────────────────────────
    # Connection Management
    # ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Connect to Redis. A failure falls back to memory until the next retry."""
        if not self._enabled:
            logger.info("Redis is disabled, skipping connection")
            return

        if self._connected:
            return

        self._closed = False
        try:
            await self._client.ping()
            self._connected = True
            self._unavailable_until = 0.0
            logger.info("Redis cache connected")
        except Exception as e:
            self._connected = False
            self._unavailable_until = time.monotonic() + self.RECONNECT_DELAY
            logger.warning(
                f"Failed to connect to Redis, using memory cache "
                f"(retrying in {self.RECONNECT_DELAY}s): {e}"
            )

    async def disconnect(self) -> None:
        """Close the Redis connection pool."""
        await self.wait_for_pending_writes()

        if not self._enabled or self._client is None:
            return

        try:
            await self._client.aclose()
            logger.info("Redis cache disconnected")
        except Exception as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self._connected = False
            self._closed = True

    def is_ready(self) -> bool:
        """Check if the primary tier should be tried."""
        if not (self._enabled and self._connected):
            return False
        return time.monotonic() >= self._unavailable_until

    async def _primary_available(self) -> bool:
        """
        Check the primary tier before an operation.

        A store that never connected retries the connection once the
        backoff window has passed, so Redis recovering after startup is
        picked up again.
        """
        if not self._enabled or self._client is None or self._closed:
            return False
        if time.monotonic() < self._unavailable_until:
            return False
        if not self._connected:
            await self.connect()
        return self._connected

    def _on_redis_error(self, operation: str, key: str, error: Exception) -> None:
        """Log a primary-tier failure and back off on connection loss."""
        if isinstance(error, (RedisConnectionError, RedisTimeoutError, OSError)):
            self._unavailable_until = time.monotonic() + self.RECONNECT_DELAY
        logger.warning(
            f"Redis {operation} failed, falling back to memory cache for key: {key} ({error})"
        )

    # ─────────────────────────────────────────────────────────────
    # Core Operations
    # ─────────────────────────────────────────────────────────────

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Store a value.

        Returns False only when the value cannot be serialized; any primary
        tier failure is absorbed by the memory tier.
        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            error = CacheError(f"Cannot serialize value: {e}", key=key, original_error=e)
            logger.error(f"Cache set completely failed: {error}")
            return False

        if await self._primary_available():
            try:
                if ttl_seconds and ttl_seconds > 0:
                    await self._client.setex(key, ttl_seconds, serialized)
                else:
                    await self._client.set(key, serialized)
                logger.debug(f"Cache set: {key} (ttl={ttl_seconds})")
                return True
            except Exception as e:
                self._on_redis_error("set", key, e)

        expires_at = time.time() + ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._memory[key] = CacheEntry(
            key=key,
            serialized_value=serialized,
            expires_at=expires_at,
            tier=CacheTier.FALLBACK,
        )
        logger.debug(f"Fallback memory cache set: {key} (ttl={ttl_seconds})")
        return True

    async def get(self, key: str) -> Optional[Any]:
        """Read a value; None on miss."""
        if await self._primary_available():
            try:
                raw = await self._client.get(key)
                if raw is not None:
                    logger.debug(f"Cache hit: {key}")
                    return json.loads(raw)
            except Exception as e:
                self._on_redis_error("get", key, e)

        entry = self._memory.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None

        if entry.is_expired():
            del self._memory[key]
            logger.debug(f"Cache miss (expired): {key}")
            return None

        try:
            value = json.loads(entry.serialized_value)
        except ValueError as e:
            logger.warning(f"Dropping unreadable memory cache entry {key}: {e}")
            del self._memory[key]
            return None

        logger.debug(f"Fallback memory cache hit: {key}")
        return value

    async def delete(self, key: str) -> bool:
        """Delete from both tiers. True if either tier held the key."""
        primary_deleted = False

        if await self._primary_available():
            try:
                primary_deleted = (await self._client.delete(key)) > 0
            except Exception as e:
                self._on_redis_error("delete", key, e)

        memory_deleted = self._memory.pop(key, None) is not None

        logger.debug(f"Cache delete: {key}")
        return primary_deleted or memory_deleted

    # ─────────────────────────────────────────────────────────────
    # Primary-only Operations
    # ─────────────────────────────────────────────────────────────

    async def exists(self, key: str) -> Optional[bool]:
        """Primary tier only; None when Redis is unavailable."""
        if not await self._primary_available():
            return None
        try:
            return (await self._client.exists(key)) > 0
        except RedisError as e:
            logger.warning(f"Cache exists check failed for key {key}: {e}")
            return None

    async def ttl(self, key: str) -> Optional[int]:
        """Primary tier only; None when Redis is unavailable."""
        if not await self._primary_available():
            return None
        try:
            return await self._client.ttl(key)
        except RedisError as e:
            logger.warning(f"Cache TTL check failed for key {key}: {e}")
            return None

    async def expire(self, key: str, ttl_seconds: int) -> Optional[bool]:
        """Primary tier only; None when Redis is unavailable."""
        if not await self._primary_available():
            return None
        try:
            return bool(await self._client.expire(key, ttl_seconds))
        except RedisError as e:
            logger.warning(f"Cache expire failed for key {key}: {e}")
            return None

    async def flush(self) -> Optional[bool]:
        """Flush the Redis database. Use with care."""
        if not await self._primary_available():
            return None
        try:
            await self._client.flushdb()
            logger.warning("All cache data flushed")
            return True
        except RedisError as e:
            logger.error(f"Cache flush failed: {e}")
            return None

    async def get_stats(self) -> Optional[dict[str, Any]]:
        """Redis INFO plus memory tier size."""
        if not await self._primary_available():
            return None
        try:
            info = await self._client.info()
        except RedisError as e:
            logger.error(f"Failed to get cache stats: {e}")
            return None
        return {
            "redis": info,
            "memory_entries": len(self._memory),
        }

    async def keys(self, pattern: str) -> list[str]:
        """Keys matching a glob pattern across both tiers."""
        found: set[str] = set()

        if await self._primary_available():
            try:
                found.update(await self._client.keys(pattern))
            except Exception as e:
                self._on_redis_error("keys", pattern, e)

        now = time.time()
        for key, entry in list(self._memory.items()):
            if entry.is_expired(now):
                del self._memory[key]
            elif fnmatch.fnmatchcase(key, pattern):
                found.add(key)

        return sorted(found)

    async def health_check(self) -> bool:
        """PING the primary tier."""
        if not self._enabled:
            return False
        try:
            await self._client.ping()
            self._connected = True
            self._unavailable_until = 0.0
            return True
        except Exception as e:
            logger.warning(f"Cache health check failed: {e}")
            return False

    # ─────────────────────────────────────────────────────────────
    # Cache-aside
    # ─────────────────────────────────────────────────────────────

    async def get_or_set(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[int] = None,
    ) -> T:
        """
        Return the cached value, or compute it and schedule the write.

        The write never blocks the caller and its failures never propagate.
        Errors raised by compute() do propagate.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for key: {key}")
            return cached

        logger.debug(f"Cache miss for key: {key}, computing value")
        value = await compute()
        self.schedule_set(key, value, ttl_seconds)
        return value

    def schedule_set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> asyncio.Task:
        """Fire-and-forget write."""
        task = asyncio.create_task(self._write_behind(key, value, ttl_seconds))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return task

    async def _write_behind(self, key: str, value: Any, ttl_seconds: Optional[int]) -> None:
        try:
            if not await self.set(key, value, ttl_seconds):
                logger.warning(f"Failed to cache data for key: {key}")
        except Exception as e:
            if any(marker in str(e) for marker in MISCONF_MARKERS):
                logger.debug(f"Redis config issue prevents caching key: {key}")
            else:
                logger.warning(f"Failed to cache data for key: {key}: {e}")

    async def wait_for_pending_writes(self) -> None:
        """Wait until all scheduled writes have settled."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    @property
    def memory_size(self) -> int:
        return len(self._memory)

    async def __aenter__(self) -> "CacheStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(redis_enabled={self._enabled}, "
            f"ready={self.is_ready()}, memory_entries={len(self._memory)})>"
        )
