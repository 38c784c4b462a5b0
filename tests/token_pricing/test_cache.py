"""
Cache Store Tests.

============================================================
PURPOSE
============================================================
Unit tests for the two-tier cache.

TEST CATEGORIES:
- Memory-only mode: no Redis configured
- Primary tier: Redis reachable
- Degraded mode: Redis down or refusing writes
- Cache-aside: get_or_set and background writes

============================================================
"""

import json
import time
from unittest.mock import AsyncMock

import pytest

from token_pricing.cache import CacheStore
from token_pricing.config import RedisConfig
from token_pricing.models import CacheEntry, CacheTier

from tests.token_pricing.fakes import FakeRedis


# ============================================================
# MEMORY-ONLY MODE
# ============================================================

class TestMemoryOnlyCache:
    """Tests for a store without Redis."""

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        """Test values round-trip through the memory tier."""
        cache = CacheStore(RedisConfig(enabled=False))
        await cache.connect()

        assert await cache.set("token_price_BTC", {"price": 1.5}, ttl_seconds=60) is True
        assert await cache.get("token_price_BTC") == {"price": 1.5}
        assert cache.is_ready() is False

    @pytest.mark.asyncio
    async def test_miss_returns_none(self):
        """Test missing keys return None."""
        cache = CacheStore()

        assert await cache.get("nope") is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_evicted(self):
        """Test an entry past its expiry is never returned."""
        cache = CacheStore()
        await cache.set("k", "v", ttl_seconds=60)

        cache._memory["k"].expires_at = time.time() - 1

        assert await cache.get("k") is None
        assert cache.memory_size == 0

    @pytest.mark.asyncio
    async def test_entry_without_ttl_never_expires(self):
        """Test ttl=None stores without expiry."""
        cache = CacheStore()
        await cache.set("k", [1, 2, 3])

        entry = cache._memory["k"]
        assert entry.expires_at is None
        assert entry.tier == CacheTier.FALLBACK
        assert await cache.get("k") == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_unserializable_value_returns_false(self):
        """Test serialization failure is the only failing set."""
        cache = CacheStore()

        assert await cache.set("k", object()) is False
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test delete reports whether a key was removed."""
        cache = CacheStore()
        await cache.set("k", 1)

        assert await cache.delete("k") is True
        assert await cache.delete("k") is False
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_primary_only_operations_return_none(self):
        """Test Redis-only operations report unavailability."""
        cache = CacheStore()
        await cache.set("k", 1, ttl_seconds=10)

        assert await cache.exists("k") is None
        assert await cache.ttl("k") is None
        assert await cache.expire("k", 5) is None
        assert await cache.flush() is None
        assert await cache.get_stats() is None
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_keys_matches_memory_tier(self):
        """Test pattern listing works without Redis."""
        cache = CacheStore()
        await cache.set("token_price_BTC", 1, ttl_seconds=60)
        await cache.set("token_price_ETH", 2, ttl_seconds=60)
        await cache.set("other", 3)

        assert await cache.keys("token_price_*") == ["token_price_BTC", "token_price_ETH"]


# ============================================================
# PRIMARY TIER
# ============================================================

class TestRedisCache:
    """Tests with a reachable Redis."""

    @pytest.mark.asyncio
    async def test_connect_marks_ready(self):
        """Test successful ping makes the store ready."""
        cache = CacheStore(client=FakeRedis())
        await cache.connect()

        assert cache.is_ready() is True

    @pytest.mark.asyncio
    async def test_set_uses_setex_with_ttl(self):
        """Test writes go to Redis with expiry."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()

        await cache.set("token_price_BTC", {"price": 2.0}, ttl_seconds=300)

        assert json.loads(redis.store["token_price_BTC"]) == {"price": 2.0}
        assert redis.ttls["token_price_BTC"] == 300
        assert cache.memory_size == 0
        assert await cache.get("token_price_BTC") == {"price": 2.0}

    @pytest.mark.asyncio
    async def test_set_without_ttl_uses_plain_set(self):
        """Test ttl=None stores without expiry."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()

        await cache.set("k", "v")

        assert "k" in redis.store
        assert await cache.ttl("k") == -1

    @pytest.mark.asyncio
    async def test_primary_only_operations(self):
        """Test exists/ttl/expire/stats against Redis."""
        cache = CacheStore(client=FakeRedis())
        await cache.connect()
        await cache.set("k", 1, ttl_seconds=100)

        assert await cache.exists("k") is True
        assert await cache.exists("missing") is False
        assert await cache.ttl("k") == 100
        assert await cache.expire("k", 10) is True
        assert await cache.ttl("k") == 10

        stats = await cache.get_stats()
        assert stats["redis"]["redis_version"] == "7.2.0"
        assert stats["memory_entries"] == 0

    @pytest.mark.asyncio
    async def test_flush(self):
        """Test flush empties the Redis database."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()
        await cache.set("k", 1)

        assert await cache.flush() is True
        assert redis.store == {}

    @pytest.mark.asyncio
    async def test_delete_removes_from_both_tiers(self):
        """Test delete covers Redis and memory."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()

        await cache.set("k", 1)
        cache._memory["k"] = CacheEntry(key="k", serialized_value="1")

        assert await cache.delete("k") is True
        assert "k" not in redis.store
        assert cache.memory_size == 0

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self):
        """Test disconnect closes the pool."""
        redis = FakeRedis()

        async with CacheStore(client=redis) as cache:
            assert cache.is_ready() is True

        assert redis.closed is True
        assert cache.is_ready() is False


# ============================================================
# DEGRADED MODE
# ============================================================

class TestDegradedCache:
    """Tests for Redis outages."""

    @pytest.mark.asyncio
    async def test_failed_connect_falls_back_to_memory(self):
        """Test set/get succeed via memory when Redis is down."""
        cache = CacheStore(client=FakeRedis(down=True))
        await cache.connect()

        assert cache.is_ready() is False
        assert await cache.set("token_price_BTC", {"price": 3.0}, ttl_seconds=1) is True
        assert await cache.get("token_price_BTC") == {"price": 3.0}

    @pytest.mark.asyncio
    async def test_expiry_honored_in_degraded_mode(self):
        """Test memory-tier TTL still applies during an outage."""
        cache = CacheStore(client=FakeRedis(down=True))
        await cache.connect()
        await cache.set("k", "v", ttl_seconds=1)

        cache._memory["k"].expires_at = time.time() - 0.01

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_outage_after_connect(self):
        """Test a mid-session outage falls back and backs off."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()

        redis.down = True
        assert await cache.set("k", "v", ttl_seconds=60) is True
        assert cache.memory_size == 1
        assert cache.is_ready() is False

        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_redis_down_at_startup_is_used_after_recovery(self):
        """Test a failed connect is retried once the backoff window passes."""
        redis = FakeRedis(down=True)
        cache = CacheStore(client=redis)
        cache.RECONNECT_DELAY = 0
        await cache.connect()
        assert cache.is_ready() is False

        redis.down = False
        assert await cache.set("token_price_BTC", {"price": 4.0}, ttl_seconds=60) is True

        assert json.loads(redis.store["token_price_BTC"]) == {"price": 4.0}
        assert cache.memory_size == 0
        assert cache.is_ready() is True

    @pytest.mark.asyncio
    async def test_no_reconnect_inside_backoff_window(self):
        """Test a failed connect keeps the memory tier until the window passes."""
        redis = FakeRedis(down=True)
        cache = CacheStore(client=redis)
        await cache.connect()

        redis.down = False
        await cache.set("k", "v", ttl_seconds=60)

        assert redis.store == {}
        assert cache.memory_size == 1

    @pytest.mark.asyncio
    async def test_no_reconnect_after_disconnect(self):
        """Test operations after disconnect stay on the memory tier."""
        redis = FakeRedis()
        cache = CacheStore(client=redis)
        await cache.connect()
        await cache.disconnect()

        await cache.set("k", "v")

        assert redis.store == {}
        assert cache.memory_size == 1

    @pytest.mark.asyncio
    async def test_misconf_write_falls_back_to_memory(self):
        """Test Redis refusing writes does not fail set."""
        redis = FakeRedis(misconf=True)
        cache = CacheStore(client=redis)
        await cache.connect()

        assert await cache.set("k", "v", ttl_seconds=60) is True
        assert redis.store == {}
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_keys_lists_memory_tier_during_outage(self):
        """Test pattern clears still see fallback entries."""
        cache = CacheStore(client=FakeRedis(down=True))
        await cache.connect()
        await cache.set("token_price_SOL", 1, ttl_seconds=60)

        assert await cache.keys("token_price_*") == ["token_price_SOL"]


# ============================================================
# CACHE-ASIDE
# ============================================================

class TestGetOrSet:
    """Tests for get_or_set."""

    @pytest.mark.asyncio
    async def test_miss_computes_and_schedules_write(self):
        """Test compute runs once and the value is written back."""
        cache = CacheStore()
        compute = AsyncMock(return_value={"price": 1.0})

        assert await cache.get_or_set("k", compute, ttl_seconds=60) == {"price": 1.0}
        await cache.wait_for_pending_writes()

        assert await cache.get_or_set("k", compute, ttl_seconds=60) == {"price": 1.0}
        compute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_compute_error_propagates(self):
        """Test errors from compute reach the caller."""
        cache = CacheStore()
        compute = AsyncMock(side_effect=RuntimeError("upstream down"))

        with pytest.raises(RuntimeError, match="upstream down"):
            await cache.get_or_set("k", compute)

        assert cache.memory_size == 0

    @pytest.mark.asyncio
    async def test_background_write_failure_is_swallowed(self):
        """Test a failing background write never propagates."""
        cache = CacheStore()
        cache.set = AsyncMock(side_effect=RuntimeError("MISCONF no disk"))

        task = cache.schedule_set("k", 1, 60)
        await cache.wait_for_pending_writes()

        assert task.done()
        assert task.exception() is None
