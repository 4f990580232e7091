import json
import os
import re

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from learnpath.api.deps import get_gateway, get_question_history
from learnpath.core.database import Base, get_db
from learnpath.main import app
from learnpath.models import orm  # noqa: F401
from learnpath.services.history import QuestionHistory

TOPIC_RE = re.compile(r'on the topic "(.+?)"')


class ScriptedGateway:
    """Replays queued answers, then falls back to ``default``.

    An answer may be a string, an exception instance (raised) or a callable
    taking the prompt.
    """

    def __init__(self, responses=None, default="not json"):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    async def complete(self, prompt, *, model, max_tokens):
        self.calls.append(prompt)
        answer = self.responses.pop(0) if self.responses else self.default
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(prompt)
        return answer

    async def close(self):
        pass


class UnreachableRedis:
    """Every command fails the way a dropped connection does."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        return fail

    async def scan_iter(self, match):
        raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        yield


def mcq_json(question, options=("alpha", "beta", "gamma", "delta"), answer=None):
    return json.dumps({"question": question, "options": list(options), "answer": answer or options[0]})


def unique_per_topic():
    """Responder producing a fresh valid question for whichever topic is asked."""
    counter = {"n": 0}

    def respond(prompt):
        counter["n"] += 1
        topic = TOPIC_RE.search(prompt).group(1)
        return mcq_json(f"{topic} question {counter['n']}")

    return respond


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def history():
    return QuestionHistory()


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(gateway, history, session_factory):
    async def override_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_question_history] = lambda: history
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
