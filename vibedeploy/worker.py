"""
Worker process for the Vibe Deploy bridge.

Subscribes to the reaction event channel and the command output channel
and runs one consumer loop for each, concurrently, until SIGTERM/SIGINT.
Both loops share the outbound Redis client and nothing else.
"""

import asyncio
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError
from redis.asyncio.client import PubSub
from slack_sdk.web.async_client import AsyncWebClient

from vibedeploy.config import Settings, load_settings
from vibedeploy.services.allowlist import AllowlistConfigError, RepositoryAllowlist, load_allowlist
from vibedeploy.services.completion_listener import CompletionListener
from vibedeploy.services.metadata_resolver import MetadataResolver
from vibedeploy.services.reaction_processor import ReactionProcessor
from vibedeploy.services.redis_client import RedisClient, RedisConnectionError, create_redis_client
from vibedeploy.services.status_reflector import StatusReflector
from vibedeploy.utils.logging import get_logger, setup_logging
from vibedeploy.utils.metrics import PipelineMetrics


logger = get_logger(__name__)


class StartupError(Exception):
    """Raised for conditions that must stop the process at startup."""
    pass


class LoopExitedError(Exception):
    """Raised when a subscription loop ends before shutdown was requested."""
    pass


class Worker:
    """Runs the reaction pipeline and the completion listener."""

    def __init__(
        self,
        settings: Settings,
        redis_client: Optional[RedisClient] = None,
        slack_client: Optional[AsyncWebClient] = None,
        allowlist: Optional[RepositoryAllowlist] = None
    ):
        """
        Initialize the worker.

        Args:
            settings: Loaded application settings
            redis_client: Shared Redis client (built from settings if None)
            slack_client: Slack Web API client (built from settings if None)
            allowlist: Preloaded allowlist (loaded from settings if None)
        """
        self.settings = settings
        self.redis_client = redis_client or create_redis_client(settings)
        self.slack_client = slack_client or AsyncWebClient(token=settings.slack_bot_token)
        self.allowlist = allowlist
        self.metrics = PipelineMetrics()

        self.reaction_processor: Optional[ReactionProcessor] = None
        self.completion_listener: Optional[CompletionListener] = None

        self._pubsubs: List[PubSub] = []
        self._tasks: List[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()
        self._stopped = False
        self._signals_registered = False

    @property
    def shutdown_event(self) -> asyncio.Event:
        return self._shutdown_event

    async def setup(self) -> None:
        """
        Load the allowlist, connect to Redis and wire the pipeline.

        Raises:
            StartupError: If the allowlist or Redis is unusable
        """
        if self.allowlist is None:
            try:
                self.allowlist = load_allowlist(self.settings.allowed_repos_config)
            except AllowlistConfigError as e:
                raise StartupError(f"Failed to load allowed repos configuration: {e}") from e

        try:
            await self.redis_client.initialize()
        except RedisConnectionError as e:
            raise StartupError(str(e)) from e
        logger.info(f"Connected to Redis at {self.settings.redis_addr}")

        reflector = StatusReflector(self.redis_client, self.metrics)
        self.reaction_processor = ReactionProcessor(
            resolver=MetadataResolver(self.slack_client, self.metrics),
            reflector=reflector,
            redis_client=self.redis_client,
            base_dir=self.settings.base_dir,
            allowlist=self.allowlist,
            metrics=self.metrics,
        )
        self.completion_listener = CompletionListener(reflector, self.metrics)

    async def start(self) -> None:
        """
        Start both loops and block until shutdown is requested.

        Raises:
            StartupError: If setup fails
            LoopExitedError: If a loop ends before shutdown is requested
        """
        logger.info("Starting worker process...")

        await self.setup()
        self._register_signal_handlers()

        reaction_pubsub = await self.redis_client.subscribe(self.settings.redis_pubsub_channel)
        output_pubsub = await self.redis_client.subscribe(self.settings.redis_output_channel)
        self._pubsubs = [reaction_pubsub, output_pubsub]

        logger.info(
            f"Subscribed to Redis channel: {self.settings.redis_pubsub_channel} "
            f"(log level: {self.settings.log_level})"
        )

        self._tasks = [
            asyncio.create_task(
                self.reaction_processor.run(reaction_pubsub, self._shutdown_event),
                name="reaction-events",
            ),
            asyncio.create_task(
                self.completion_listener.run(output_pubsub, self._shutdown_event),
                name="command-output",
            ),
        ]

        shutdown_waiter = asyncio.create_task(self._shutdown_event.wait(), name="shutdown")
        done, _ = await asyncio.wait(
            [shutdown_waiter, *self._tasks],
            return_when=asyncio.FIRST_COMPLETED,
        )

        shutdown_waiter.cancel()

        if self._shutdown_event.is_set():
            return

        # A loop only returns on its own when it has failed
        for task in done:
            if task is shutdown_waiter:
                continue
            error = None if task.cancelled() else task.exception()
            raise LoopExitedError(f"Loop {task.get_name()} exited unexpectedly: {error}") from error

    async def stop(self) -> None:
        """
        Stop the worker.

        In-flight messages are abandoned, not rolled back.
        """
        if self._stopped:
            return
        self._stopped = True

        logger.info("Shutting down...")
        self._shutdown_event.set()

        self._remove_signal_handlers()

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for pubsub in self._pubsubs:
            await pubsub.aclose()

        await self.redis_client.close()

        self.metrics.log_summary()
        logger.info("Worker process stopped")

    def request_shutdown(self) -> None:
        """Ask both loops to exit at their next scheduling point."""
        self._shutdown_event.set()

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            signal_name = signal.Signals(signum).name
            logger.info(f"Received signal {signal_name}, initiating graceful shutdown...")
            self.request_shutdown()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, signal_handler, signum)

        logger.info("Signal handlers registered (SIGTERM, SIGINT)")
        self._signals_registered = True

    def _remove_signal_handlers(self) -> None:
        if not self._signals_registered:
            return
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(signum)
        self._signals_registered = False


async def main() -> int:
    """
    Main entry point for the worker process.

    Returns:
        Process exit code
    """
    setup_logging("INFO")

    try:
        settings = load_settings()
    except ValidationError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 1

    setup_logging(settings.log_level)

    worker = Worker(settings)

    try:
        await worker.start()
    except (StartupError, LoopExitedError) as e:
        logger.critical(str(e))
        return 1
    finally:
        await worker.stop()

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
