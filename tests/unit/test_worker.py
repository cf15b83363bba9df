"""
Tests for the worker process: wiring, lifecycle and end-to-end scenarios.

Both subscription loops run against scripted pub/sub handles while
outbound traffic lands in fakeredis.
"""

import asyncio
import json
import logging
import os
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vibedeploy.config import Settings
from vibedeploy.services.allowlist import RepositoryAllowlist
from vibedeploy.services.redis_client import RedisConnectionError
from vibedeploy.worker import LoopExitedError, StartupError, Worker, main


PR_PAYLOAD = {
    "pr_number": 42,
    "repository": "org/app",
    "pr_url": "https://github.com/org/app/pull/42",
    "author": "octocat",
    "branch": "feat/x",
    "event_action": "opened",
}

EXPECTED_COMMAND = {
    "repo": "org/app",
    "branch": "feat/x",
    "type": "vibe-deploy",
    "dir": "/app/repos/org/app",
    "commands": [
        "git fetch origin",
        "git checkout feat/x",
        "git pull",
        "docker compose build",
        "docker compose down",
        "docker compose up -d",
        "git checkout main",
    ],
    "metadata": {"channel": "C1", "ts": "100.1"},
}


def rocket_reaction() -> str:
    return json.dumps({
        "event": {
            "type": "reaction_added",
            "user": "U123",
            "reaction": "rocket",
            "item": {"type": "message", "channel": "C1", "ts": "100.1"},
        },
        "authorizations": [{"user_id": "UBOT", "is_bot": True}],
    })


def command_output(command: str) -> str:
    return json.dumps({
        "metadata": {"channel": "C1", "ts": "100.1"},
        "type": "vibe-deploy",
        "command": command,
        "output": "",
    })


async def wait_for_length(fake_redis, key: str, length: int, timeout: float = 5.0) -> list:
    async def _poll():
        while await fake_redis.llen(key) < length:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)
    return [json.loads(item) for item in await fake_redis.lrange(key, 0, -1)]


@pytest.fixture
def settings() -> Settings:
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None, slack_bot_token="xoxb-test")


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    original_level = root.level
    original_handlers = list(root.handlers)

    yield

    root.handlers[:] = original_handlers
    root.setLevel(original_level)


class TestWorkerSetup:
    """Startup failures that must stop the process."""

    @pytest.mark.asyncio
    async def test_malformed_allowlist_is_fatal(self, tmp_path, slack_client):
        config_file = tmp_path / "allowed.yaml"
        config_file.write_text("allowed_repos: [unclosed")
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(
                _env_file=None,
                slack_bot_token="xoxb-test",
                allowed_repos_config=str(config_file),
            )
        redis_client = MagicMock()
        redis_client.initialize = AsyncMock()

        worker = Worker(settings, redis_client=redis_client, slack_client=slack_client)

        with pytest.raises(StartupError, match="allowed repos configuration"):
            await worker.setup()
        redis_client.initialize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_unavailable_is_fatal(self, settings, slack_client):
        redis_client = MagicMock()
        redis_client.initialize = AsyncMock(side_effect=RedisConnectionError("Failed to connect to Redis"))

        worker = Worker(settings, redis_client=redis_client, slack_client=slack_client)

        with pytest.raises(StartupError, match="Failed to connect"):
            await worker.setup()

    @pytest.mark.asyncio
    async def test_setup_shares_one_reflector(self, settings, slack_client):
        redis_client = MagicMock()
        redis_client.initialize = AsyncMock()

        worker = Worker(settings, redis_client=redis_client, slack_client=slack_client)
        await worker.setup()

        assert worker.reaction_processor.reflector is worker.completion_listener.reflector
        assert worker.reaction_processor.redis_client is redis_client
        assert worker.reaction_processor.base_dir == "/app/repos"
        assert not worker.allowlist.enabled


class TestWorkerLifecycle:

    @pytest.fixture
    def worker_parts(self, settings, redis_client, slack_client, history_response, fake_pubsub):
        reaction_pubsub = fake_pubsub()
        output_pubsub = fake_pubsub()

        redis_client.initialize = AsyncMock()
        redis_client.close = AsyncMock()
        redis_client.subscribe = AsyncMock(side_effect=[reaction_pubsub, output_pubsub])
        slack_client.conversations_history.return_value = history_response(PR_PAYLOAD)

        worker = Worker(
            settings,
            redis_client=redis_client,
            slack_client=slack_client,
            allowlist=RepositoryAllowlist(),
        )
        return worker, reaction_pubsub, output_pubsub

    @staticmethod
    async def started(worker: Worker) -> asyncio.Task:
        task = asyncio.create_task(worker.start())

        async def _running():
            while len(worker._tasks) < 2:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_running(), timeout=5)
        return task

    @pytest.mark.asyncio
    async def test_deployment_round_trip(self, worker_parts, redis_client, fake_redis):
        worker, reaction_pubsub, output_pubsub = worker_parts
        task = await self.started(worker)

        try:
            reaction_pubsub.push(rocket_reaction())
            commands = await wait_for_length(fake_redis, redis_client.command_list, 1)
            assert commands == [EXPECTED_COMMAND]

            reactions = await wait_for_length(fake_redis, redis_client.reaction_list, 1)
            assert reactions == [{"reaction": "gear", "channel": "C1", "ts": "100.1"}]

            for instruction in EXPECTED_COMMAND["commands"]:
                output_pubsub.push(command_output(instruction))

            reactions = await wait_for_length(fake_redis, redis_client.reaction_list, 3)
            assert reactions == [
                {"reaction": "gear", "channel": "C1", "ts": "100.1"},
                {"reaction": "gear", "channel": "C1", "ts": "100.1", "remove": True},
                {"reaction": "rocket", "channel": "C1", "ts": "100.1"},
            ]
        finally:
            worker.request_shutdown()
            await asyncio.wait_for(task, timeout=5)
            await worker.stop()

        assert reaction_pubsub.closed
        assert output_pubsub.closed
        redis_client.close.assert_awaited_once()
        assert worker.metrics.get("deployments_completed") == 1

    @pytest.mark.asyncio
    async def test_sigterm_stops_both_loops(self, worker_parts):
        worker, _, _ = worker_parts
        task = await self.started(worker)

        os.kill(os.getpid(), signal.SIGTERM)

        await asyncio.wait_for(task, timeout=5)
        assert worker.shutdown_event.is_set()
        await worker.stop()
        assert all(t.done() for t in worker._tasks)

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, worker_parts, redis_client):
        worker, _, _ = worker_parts

        await worker.stop()
        await worker.stop()

        redis_client.close.assert_awaited_once()


class TestMain:

    @pytest.mark.asyncio
    async def test_missing_token_exits_nonzero(self, tmp_path, monkeypatch, restore_root_logging):
        monkeypatch.chdir(tmp_path)
        with patch.dict(os.environ, {}, clear=True):
            assert await main() == 1

    @pytest.mark.asyncio
    async def test_redis_failure_exits_nonzero(self, tmp_path, monkeypatch, restore_root_logging):
        monkeypatch.chdir(tmp_path)
        redis_client = MagicMock()
        redis_client.initialize = AsyncMock(side_effect=RedisConnectionError("Failed to connect to Redis"))
        redis_client.close = AsyncMock()

        with patch.dict(os.environ, {"SLACK_BOT_TOKEN": "xoxb-test"}, clear=True), \
                patch("vibedeploy.worker.create_redis_client", return_value=redis_client):
            assert await main() == 1

        redis_client.close.assert_awaited_once()


class TestLoopFailure:
    """A loop that dies on its own must surface as a process failure."""

    @staticmethod
    def failing_redis_client(fake_pubsub) -> MagicMock:
        redis_client = MagicMock()
        redis_client.initialize = AsyncMock()
        redis_client.close = AsyncMock()
        redis_client.subscribe = AsyncMock(side_effect=[
            fake_pubsub([RuntimeError("socket state corrupted")]),
            fake_pubsub(),
        ])
        return redis_client

    @pytest.mark.asyncio
    async def test_start_raises_when_loop_exits(self, settings, slack_client, fake_pubsub):
        worker = Worker(
            settings,
            redis_client=self.failing_redis_client(fake_pubsub),
            slack_client=slack_client,
            allowlist=RepositoryAllowlist(),
        )

        try:
            with pytest.raises(LoopExitedError, match="reaction-events"):
                await asyncio.wait_for(worker.start(), timeout=5)
        finally:
            await worker.stop()

        assert all(t.done() for t in worker._tasks)

    @pytest.mark.asyncio
    async def test_main_exits_nonzero_when_loop_exits(
        self, tmp_path, monkeypatch, restore_root_logging, fake_pubsub
    ):
        monkeypatch.chdir(tmp_path)
        redis_client = self.failing_redis_client(fake_pubsub)

        with patch.dict(os.environ, {"SLACK_BOT_TOKEN": "xoxb-test"}, clear=True), \
                patch("vibedeploy.worker.create_redis_client", return_value=redis_client):
            assert await asyncio.wait_for(main(), timeout=5) == 1

        redis_client.close.assert_awaited_once()
