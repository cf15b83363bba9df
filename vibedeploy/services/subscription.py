"""
Pub/sub consumer loop shared by the reaction and completion pipelines.

Messages are handed to the handler one at a time in arrival order. Nothing
is acknowledged or redelivered; a message lost to a connection error is gone.
"""

import asyncio
from typing import Awaitable, Callable, Union

from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from vibedeploy.utils.logging import get_logger


logger = get_logger(__name__)

MessageHandler = Callable[[Union[str, bytes]], Awaitable[object]]


async def run_subscription(
    pubsub: PubSub,
    handler: MessageHandler,
    shutdown_event: asyncio.Event,
    name: str,
    poll_timeout: float = 1.0,
    error_backoff: float = 1.0
) -> None:
    """
    Consume a subscribed pub/sub handle until shutdown is requested.

    Args:
        pubsub: Subscribed PubSub handle owned by this loop
        handler: Coroutine called with each message payload
        shutdown_event: Set to stop the loop at its next iteration
        name: Loop name for logs
        poll_timeout: Seconds to wait for a message before rechecking shutdown
        error_backoff: Seconds to pause after a Redis read error
    """
    logger.info(f"Starting {name} loop")

    while not shutdown_event.is_set():
        try:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True,
                timeout=poll_timeout
            )
        except UnicodeDecodeError as e:
            # Payload bytes are consumed before decoding fails
            logger.error(f"Dropping undecodable message on {name} loop: {e}")
            continue
        except RedisError as e:
            logger.error(f"Redis error in {name} loop: {e}")
            await asyncio.sleep(error_backoff)
            continue

        if message is None or message.get("type") != "message":
            continue

        logger.debug(f"Received message on {name} loop", extra={"redis_channel": message.get("channel")})

        try:
            await handler(message["data"])
        except Exception as e:
            logger.error(f"Unhandled error in {name} loop: {e}", exc_info=True)

    logger.info(f"{name} loop stopped")
