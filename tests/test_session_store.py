import asyncio
import json
import unittest

from hls_session_proxy.session_store import (
    DEFAULT_SESSION_TTL,
    MemorySessionStore,
    RedisSessionStore,
    Session,
    create_session_store,
    store_session,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeRedis:
    """Minimal async stand-in for the redis.asyncio client calls the store makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    async def aclose(self):
        self.closed = True


class SessionTests(unittest.TestCase):
    def test_default_lifetime_is_one_day(self):
        session = Session("abc", "https://origin.example.com/live/master.m3u8", created_at=100.0)
        self.assertEqual(session.expires_at, 100.0 + DEFAULT_SESSION_TTL)
        self.assertGreater(session.expires_at, session.created_at)
        self.assertFalse(session.is_expired(100.0 + DEFAULT_SESSION_TTL))
        self.assertTrue(session.is_expired(100.0 + DEFAULT_SESSION_TTL + 1))

    def test_non_positive_ttl_is_rejected(self):
        with self.assertRaises(ValueError):
            Session("abc", "https://origin.example.com/master.m3u8", ttl=0)

    def test_dict_round_trip(self):
        session = Session("abc", "https://origin.example.com/master.m3u8", metadata={"title": "x"},
                          created_at=5.0, ttl=10)
        restored = Session.from_dict(session.to_dict())
        self.assertEqual(restored.to_dict(), session.to_dict())


class MemorySessionStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = MemorySessionStore(clock=self.clock)

    async def test_get_unknown_session(self):
        self.assertIsNone(await self.store.get("missing"))

    async def test_put_then_get(self):
        await self.store.put(Session("abc", "https://origin.example.com/master.m3u8", created_at=self.clock.now))
        session = await self.store.get("abc")
        self.assertEqual(session.origin_url, "https://origin.example.com/master.m3u8")

    async def test_expired_session_is_removed_on_read(self):
        await store_session(self.store, "abc", "https://origin.example.com/master.m3u8", ttl=60)
        self.clock.now = 10 ** 12
        self.assertIsNone(await self.store.get("abc"))
        self.assertEqual(len(self.store), 0)

    async def test_lazy_expiry_keeps_unread_entries(self):
        await self.store.put(Session("abc", "https://o/master.m3u8", created_at=self.clock.now, ttl=60))
        self.clock.now += 120
        self.assertEqual(len(self.store), 1)
        self.assertTrue(await self.store.delete_if_expired("abc"))
        self.assertFalse(await self.store.delete_if_expired("abc"))
        self.assertEqual(len(self.store), 0)

    async def test_delete_if_expired_keeps_live_session(self):
        await self.store.put(Session("abc", "https://o/master.m3u8", created_at=self.clock.now, ttl=60))
        self.assertFalse(await self.store.delete_if_expired("abc"))
        self.assertIsNotNone(await self.store.get("abc"))

    async def test_evict_expired_items(self):
        await self.store.put(Session("old", "https://o/a.m3u8", created_at=self.clock.now, ttl=10))
        await self.store.put(Session("new", "https://o/b.m3u8", created_at=self.clock.now, ttl=1000))
        self.clock.now += 100
        self.assertEqual(await self.store.evict_expired_items(), 1)
        self.assertIsNone(await self.store.get("old"))
        self.assertIsNotNone(await self.store.get("new"))

    async def test_concurrent_writes_leave_one_complete_record(self):
        first = Session("same", "https://one.example.com/master.m3u8", metadata={"writer": "one"},
                        created_at=self.clock.now)
        second = Session("same", "https://two.example.com/master.m3u8", metadata={"writer": "two"},
                         created_at=self.clock.now)

        async def read():
            return await self.store.get("same")

        results = await asyncio.gather(self.store.put(first), read(), self.store.put(second), read())
        stored = await self.store.get("same")
        self.assertIs(stored, second)
        for observed in (results[1], results[3]):
            if observed is not None:
                self.assertIn(observed, (first, second))
                writer = "one" if "one.example" in observed.origin_url else "two"
                self.assertEqual(observed.metadata["writer"], writer)


class RedisSessionStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.client = FakeRedis()
        self.store = RedisSessionStore(self.client, clock=self.clock)

    async def test_put_uses_setex_with_remaining_lifetime(self):
        await self.store.put(Session("abc", "https://o/master.m3u8", created_at=self.clock.now, ttl=600))
        key = "hls-proxy:session:abc"
        self.assertEqual(self.client.ttls[key], 600)
        self.assertEqual(json.loads(self.client.data[key])["originUrl"], "https://o/master.m3u8")

    async def test_get_round_trips_record(self):
        await self.store.put(Session("abc", "https://o/master.m3u8", metadata={"k": "v"},
                                     created_at=self.clock.now))
        session = await self.store.get("abc")
        self.assertEqual(session.origin_url, "https://o/master.m3u8")
        self.assertEqual(session.metadata, {"k": "v"})

    async def test_expired_record_is_deleted_on_read(self):
        await self.store.put(Session("abc", "https://o/master.m3u8", created_at=self.clock.now, ttl=60))
        self.clock.now += 61
        self.assertIsNone(await self.store.get("abc"))
        self.assertEqual(self.client.data, {})

    async def test_unreadable_record_is_discarded(self):
        self.client.data["hls-proxy:session:abc"] = "{not json"
        self.assertIsNone(await self.store.get("abc"))
        self.assertEqual(self.client.data, {})

    async def test_close_closes_client(self):
        await self.store.close()
        self.assertTrue(self.client.closed)


class CreateSessionStoreTests(unittest.TestCase):
    def test_memory_backend(self):
        self.assertIsInstance(create_session_store({"SESSION_BACKEND": "memory"}), MemorySessionStore)

    def test_redis_backend(self):
        store = create_session_store({"SESSION_BACKEND": "redis", "REDIS_URL": "redis://localhost:6379/0"})
        self.assertIsInstance(store, RedisSessionStore)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_session_store({"SESSION_BACKEND": "etcd"})


if __name__ == '__main__':
    unittest.main()
