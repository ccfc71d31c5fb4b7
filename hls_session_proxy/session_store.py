#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import asyncio
import json
import logging
import time

sessions_logger = logging.getLogger("sessions")

DEFAULT_SESSION_TTL = 24 * 60 * 60
REDIS_KEY_PREFIX = "hls-proxy:session"


class Session:
    """
    Binding of an opaque, proxy-visible id to the real upstream entry point.
    """

    def __init__(self, session_id, origin_url, metadata=None, created_at=None, expires_at=None,
                 ttl=DEFAULT_SESSION_TTL):
        if ttl <= 0:
            raise ValueError("Session lifetime must be positive")
        self.session_id = session_id
        self.origin_url = origin_url
        self.metadata = dict(metadata or {})
        self.created_at = created_at if created_at is not None else time.time()
        self.expires_at = expires_at if expires_at is not None else self.created_at + ttl

    def is_expired(self, now=None):
        if now is None:
            now = time.time()
        return now > self.expires_at

    def to_dict(self):
        return {
            "sessionId": self.session_id,
            "originUrl": self.origin_url,
            "metadata": self.metadata,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            data["sessionId"],
            data["originUrl"],
            metadata=data.get("metadata"),
            created_at=data["createdAt"],
            expires_at=data["expiresAt"],
        )

    def __repr__(self):
        return f"Session({self.session_id[:20]!r}, expires_at={self.expires_at})"


class SessionStore:
    """
    Expiring key/value store of sessions shared by every request handler.

    Backends replace whole records on ``put`` so concurrent writers of the same
    id resolve to last-writer-wins and readers never observe a partial record.
    """

    async def get(self, session_id):
        raise NotImplementedError()

    async def put(self, session):
        raise NotImplementedError()

    async def delete_if_expired(self, session_id):
        raise NotImplementedError()

    async def evict_expired_items(self):
        return 0

    async def close(self):
        pass


class MemorySessionStore(SessionStore):
    def __init__(self, clock=time.time):
        self.sessions = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, session_id):
        async with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                # Lazy expiry; nothing else removes the entry unless the sweep is enabled
                self.sessions.pop(session_id, None)
                sessions_logger.info("Session %s expired, removed on read", session_id[:20])
                return None
            return session

    async def put(self, session):
        async with self._lock:
            self.sessions[session.session_id] = session
        sessions_logger.info("Stored session %s", session.session_id[:20])

    async def delete_if_expired(self, session_id):
        async with self._lock:
            session = self.sessions.get(session_id)
            if session is not None and session.is_expired(self._clock()):
                del self.sessions[session_id]
                return True
            return False

    async def evict_expired_items(self):
        async with self._lock:
            now = self._clock()
            expired_keys = [k for k, s in self.sessions.items() if s.is_expired(now)]
            for k in expired_keys:
                self.sessions.pop(k, None)
            return len(expired_keys)

    def __len__(self):
        return len(self.sessions)


class RedisSessionStore(SessionStore):
    """
    Sessions kept in Redis as JSON documents. Keys are written with SETEX so
    Redis drops them on its own once the lifetime elapses.
    """

    def __init__(self, client, key_prefix=REDIS_KEY_PREFIX, clock=time.time):
        self.client = client
        self.key_prefix = key_prefix
        self._clock = clock

    def _key(self, session_id):
        return f"{self.key_prefix}:{session_id}"

    async def _load(self, session_id):
        payload_raw = await self.client.get(self._key(session_id))
        if not payload_raw:
            return None
        if isinstance(payload_raw, bytes):
            payload_raw = payload_raw.decode("utf-8")
        try:
            return Session.from_dict(json.loads(payload_raw))
        except (ValueError, KeyError, TypeError) as exc:
            sessions_logger.warning("Discarding unreadable session record %s: %s", session_id[:20], exc)
            await self.client.delete(self._key(session_id))
            return None

    async def get(self, session_id):
        session = await self._load(session_id)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            await self.client.delete(self._key(session_id))
            return None
        return session

    async def put(self, session):
        ttl = max(1, int(session.expires_at - self._clock()))
        await self.client.setex(self._key(session.session_id), ttl, json.dumps(session.to_dict()))
        sessions_logger.info("Stored session %s in redis", session.session_id[:20])

    async def delete_if_expired(self, session_id):
        session = await self._load(session_id)
        if session is not None and session.is_expired(self._clock()):
            await self.client.delete(self._key(session_id))
            return True
        return False

    async def close(self):
        await self.client.aclose()


def create_session_store(config):
    backend = config.get("SESSION_BACKEND", "memory")
    if backend == "memory":
        return MemorySessionStore()
    if backend == "redis":
        import redis.asyncio as redis_asyncio
        client = redis_asyncio.Redis.from_url(config["REDIS_URL"], decode_responses=True)
        return RedisSessionStore(client)
    raise ValueError(f"Unknown session backend '{backend}'")


async def store_session(store, session_id, origin_url, metadata=None, ttl=DEFAULT_SESSION_TTL):
    session = Session(session_id, origin_url, metadata=metadata, ttl=ttl)
    await store.put(session)
    return session


async def periodic_session_sweep(store, interval):
    while True:
        await asyncio.sleep(interval)
        try:
            evicted_count = await store.evict_expired_items()
            if evicted_count > 0:
                sessions_logger.info("Session sweep: evicted %s expired sessions", evicted_count)
        except Exception as e:
            sessions_logger.error("Error during session sweep: %s", e)
