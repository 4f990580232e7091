"""
Per-topic memory of questions already served, used to avoid repeats across
quiz restarts.

History is best-effort: the in-memory store forgets everything on restart and
concurrent writers to the same topic are not serialized. Both stores are
add-only per key, so a race can at worst let one duplicate through.
"""
import logging
from typing import Dict, List, Optional, Protocol, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def normalize(question: str) -> str:
    return question.strip().lower()


class HistoryStore(Protocol):
    async def contains(self, topic: str, key: str) -> bool: ...

    async def add(self, topic: str, key: str) -> None: ...

    async def recent(self, topic: str, limit: int) -> List[str]: ...

    async def clear(self, topics: Optional[Sequence[str]] = None) -> None: ...


class InMemoryHistoryStore:
    """Process-local store; dicts keep insertion order so they double as ordered sets."""

    def __init__(self):
        self._topics: Dict[str, Dict[str, None]] = {}

    async def contains(self, topic: str, key: str) -> bool:
        return key in self._topics.get(topic, {})

    async def add(self, topic: str, key: str) -> None:
        self._topics.setdefault(topic, {})[key] = None

    async def recent(self, topic: str, limit: int) -> List[str]:
        seen = self._topics.get(topic)
        if not seen or limit <= 0:
            return []
        return list(seen)[-limit:]

    async def clear(self, topics: Optional[Sequence[str]] = None) -> None:
        if topics is None:
            self._topics.clear()
            return
        for topic in topics:
            self._topics.pop(topic, None)


class RedisHistoryStore:
    """One sorted set per topic, scored by a shared counter so ranges keep insertion order."""

    def __init__(self, url: str, prefix: str = "mcq:history", client: Optional[redis.Redis] = None):
        self.url = url
        self.prefix = prefix
        self.redis: Optional[redis.Redis] = client

    async def connect(self):
        """Initialize Redis connection pool."""
        if self.redis is None:
            self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    def _key(self, topic: str) -> str:
        return f"{self.prefix}:{topic}"

    def _sequence_key(self) -> str:
        # outside the "prefix:*" pattern so a global clear never rewinds it
        return f"{self.prefix}-seq"

    async def contains(self, topic: str, key: str) -> bool:
        return await self.redis.zscore(self._key(topic), key) is not None

    async def add(self, topic: str, key: str) -> None:
        if await self.contains(topic, key):
            return
        score = await self.redis.incr(self._sequence_key())
        await self.redis.zadd(self._key(topic), {key: score}, nx=True)

    async def recent(self, topic: str, limit: int) -> List[str]:
        if limit <= 0:
            return []
        return list(await self.redis.zrange(self._key(topic), -limit, -1))

    async def clear(self, topics: Optional[Sequence[str]] = None) -> None:
        if topics is None:
            keys = [k async for k in self.redis.scan_iter(match=f"{self.prefix}:*")]
        else:
            keys = [self._key(t) for t in topics]
        if keys:
            await self.redis.delete(*keys)


class QuestionHistory:
    """Service wrapper; one instance per process, shared by every MCQ engine.

    Store failures are logged and treated as an empty history, so an unreachable
    Redis only costs repeat avoidance, never the quiz itself.
    """

    def __init__(self, store: Optional[HistoryStore] = None):
        self.store = store if store is not None else InMemoryHistoryStore()

    async def contains(self, topic: str, question: str) -> bool:
        try:
            return await self.store.contains(topic, normalize(question))
        except RedisError as e:
            logger.warning(f"History lookup failed for topic {topic}: {e}")
            return False

    async def add(self, topic: str, question: str) -> None:
        try:
            await self.store.add(topic, normalize(question))
        except RedisError as e:
            logger.warning(f"History write failed for topic {topic}: {e}")

    async def recent(self, topic: str, limit: int = 5) -> List[str]:
        """Most recent ``limit`` normalized questions for ``topic``, oldest first."""
        try:
            return await self.store.recent(topic, limit)
        except RedisError as e:
            logger.warning(f"History read failed for topic {topic}: {e}")
            return []

    async def reset(self, topics: Optional[Sequence[str]] = None) -> None:
        """Clear history for the given topics, or for every topic when none are given."""
        try:
            if topics:
                await self.store.clear(list(topics))
            else:
                await self.store.clear()
        except RedisError as e:
            logger.warning(f"History reset failed: {e}")
            return
        if topics:
            for topic in topics:
                logger.info(f'Cleared generated questions cache for topic: "{topic}"')
        else:
            logger.info("Cleared all generated questions cache.")
