"""
Redis client wrapper for the bridge's bus traffic.

This service provides Redis operations for:
- Pub/sub subscriptions (reaction events, command output)
- Deployment command queue using lists
- Slack reaction mutation queue using lists

One client instance is shared by every loop for the process lifetime.
Publishing is not retried; a failed push is reported to the caller.
"""

import logging
from typing import Optional
from contextlib import asynccontextmanager
import redis.asyncio as redis
from redis.asyncio.client import PubSub
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from vibedeploy.config import Settings
from vibedeploy.models.deployment import DeploymentCommand, StatusMutation


logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when the Redis connection cannot be established."""
    pass


class RedisPublishError(Exception):
    """Raised when a payload cannot be pushed onto a Redis list."""
    pass


class RedisClient:
    """
    Redis client wrapper with connection pooling.

    Provides methods for:
    - Subscribing to pub/sub channels
    - Pushing deployment commands onto the executor's list
    - Pushing reaction mutations onto the Slack reaction list
    """

    DEFAULT_COMMAND_LIST = "poppit-commands"
    DEFAULT_REACTION_LIST = "slack_reactions"

    def __init__(
        self,
        redis_url: str,
        command_list: str = DEFAULT_COMMAND_LIST,
        reaction_list: str = DEFAULT_REACTION_LIST,
        connection_timeout: int = 5
    ):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            command_list: List key that receives deployment commands
            reaction_list: List key that receives reaction mutations
            connection_timeout: Connect timeout in seconds
        """
        self._redis_url = redis_url
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self.command_list = command_list
        self.reaction_list = reaction_list
        self._connection_timeout = connection_timeout

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool and verify connectivity.

        Should be called during startup.

        Raises:
            RedisConnectionError: If Redis cannot be reached
        """
        try:
            self._pool = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                decode_responses=True,
                socket_connect_timeout=self._connection_timeout
            )

            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()

            logger.info("Redis connection pool initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis connection pool: {e}")
            raise RedisConnectionError(f"Failed to connect to Redis: {e}") from e

    async def close(self) -> None:
        """
        Close Redis connection pool.

        Should be called during shutdown.
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        logger.info("Redis connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        """
        Get Redis client with connection check.

        Yields:
            redis.Redis: Redis client instance

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        yield self._client

    # ========== Pub/Sub Operations ==========

    async def subscribe(self, channel: str) -> PubSub:
        """
        Open a dedicated pub/sub handle subscribed to one channel.

        Args:
            channel: Pub/sub channel name

        Returns:
            Subscribed PubSub handle; the caller owns and closes it
        """
        async with self._get_client() as client:
            pubsub = client.pubsub()
            await pubsub.subscribe(channel)
            logger.info(f"Subscribed to Redis channel: {channel}")
            return pubsub

    # ========== Queue Operations (List) ==========

    async def _push(self, list_key: str, payload: str) -> None:
        async with self._get_client() as client:
            try:
                await client.rpush(list_key, payload)
            except RedisError as e:
                raise RedisPublishError(f"Failed to push to Redis list {list_key}: {e}") from e

    async def enqueue_deployment_command(self, command: DeploymentCommand) -> None:
        """
        Push a deployment command onto the executor's list.

        Args:
            command: Command to enqueue

        Raises:
            RedisPublishError: If the push fails
        """
        await self._push(self.command_list, command.to_json())
        logger.debug(f"Enqueued deployment command for {command.repo} branch {command.branch}")

    async def publish_status_mutation(self, mutation: StatusMutation) -> None:
        """
        Push a reaction add/remove request onto the reaction list.

        Args:
            mutation: Reaction mutation to publish

        Raises:
            RedisPublishError: If the push fails
        """
        await self._push(self.reaction_list, mutation.to_json())
        logger.debug(
            f"Pushed {mutation.reaction.value} mutation (remove={mutation.remove}) "
            f"for {mutation.channel}/{mutation.ts}"
        )


def create_redis_client(settings: Settings) -> RedisClient:
    """
    Build the shared Redis client from settings.

    Args:
        settings: Application Settings

    Returns:
        RedisClient instance (not yet initialized)
    """
    return RedisClient(
        redis_url=settings.redis_url,
        command_list=settings.redis_list_name,
        reaction_list=settings.redis_reaction_list,
    )
