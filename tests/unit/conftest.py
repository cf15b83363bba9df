"""
Shared fixtures for unit tests.

Redis is replaced by fakeredis; Slack by AsyncMock clients.
"""

import asyncio
from typing import AsyncGenerator, Iterable, Optional
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest

from vibedeploy.services.redis_client import RedisClient
from vibedeploy.utils.metrics import PipelineMetrics


COMMAND_LIST = "poppit-commands"
REACTION_LIST = "slack_reactions"


@pytest.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """In-memory Redis shared by the client under test and assertions."""
    fake = fakeredis.FakeAsyncRedis(decode_responses=True)
    await fake.flushdb()

    yield fake

    await fake.flushdb()
    await fake.aclose()


@pytest.fixture
async def redis_client(fake_redis) -> RedisClient:
    """RedisClient wired to fakeredis."""
    client = RedisClient(
        redis_url="redis://localhost:6379/0",
        command_list=COMMAND_LIST,
        reaction_list=REACTION_LIST,
    )
    client._client = fake_redis
    return client


@pytest.fixture
def metrics() -> PipelineMetrics:
    return PipelineMetrics()


@pytest.fixture
def slack_client() -> MagicMock:
    """Slack client whose conversations_history is an AsyncMock."""
    client = MagicMock()
    client.conversations_history = AsyncMock()
    return client


def _history_response(event_payload=None, include_message: bool = True) -> dict:
    if not include_message:
        return {"ok": True, "messages": []}

    message = {"type": "message", "ts": "100.1", "text": "PR opened"}
    if event_payload is not None:
        message["metadata"] = {
            "event_type": "github_pull_request",
            "event_payload": event_payload,
        }
    return {"ok": True, "messages": [message]}


@pytest.fixture
def history_response():
    """Builder for conversations.history response bodies."""
    return _history_response



class FakePubSub:
    """
    Scripted stand-in for a subscribed redis PubSub handle.

    Items are returned from get_message in order; an Exception item is
    raised instead. Once drained, the handle sets `drained_event` if one
    was given, otherwise it idles like a quiet channel.
    """

    def __init__(self, items: Iterable = (), drained_event: Optional[asyncio.Event] = None):
        self.items = list(items)
        self.drained_event = drained_event
        self.closed = False

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: float = 0.0):
        await asyncio.sleep(0)
        if self.items:
            item = self.items.pop(0)
            if isinstance(item, Exception):
                raise item
            if ignore_subscribe_messages and item.get("type") in ("subscribe", "unsubscribe"):
                return None
            return item

        if self.drained_event is not None:
            self.drained_event.set()
        else:
            await asyncio.sleep(0.01)
        return None

    def push(self, data: str) -> None:
        self.items.append(pubsub_message(data))

    async def aclose(self) -> None:
        self.closed = True


def pubsub_message(data: str, channel: str = "test-channel") -> dict:
    return {"type": "message", "pattern": None, "channel": channel, "data": data}


@pytest.fixture
def fake_pubsub():
    """Factory for FakePubSub handles."""
    return FakePubSub


@pytest.fixture
def message_factory():
    """Factory for pub/sub message dicts."""
    return pubsub_message
