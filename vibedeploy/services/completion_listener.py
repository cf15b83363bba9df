"""
Completion Listener component.

Watches executor output and, when the go-live instruction of a deployment
command reports back, swaps the message's in-progress marker for the
success marker. No in-flight table is kept; deployment state exists only
as reactions on the Slack message. A deployment whose notice never
arrives keeps its in-progress marker.
"""

import asyncio
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError
from redis.asyncio.client import PubSub

from vibedeploy.models.deployment import CompletionNotice
from vibedeploy.models.enums import CommandType
from vibedeploy.services.command_synthesizer import GO_LIVE_INSTRUCTION
from vibedeploy.services.status_reflector import StatusReflector
from vibedeploy.services.subscription import run_subscription
from vibedeploy.utils.logging import get_logger
from vibedeploy.utils.metrics import PipelineMetrics


logger = get_logger(__name__)


class CompletionOutcome(str, Enum):
    """What happened to one completion notice."""

    DECODE_FAILED = "decode_failed"
    IGNORED_TYPE = "ignored_type"
    IGNORED_COMMAND = "ignored_command"
    MISSING_CORRELATION = "missing_correlation"
    REFLECTED = "reflected"


class CompletionListener:
    """Reflects deployment completion back onto Slack messages."""

    def __init__(
        self,
        reflector: StatusReflector,
        metrics: Optional[PipelineMetrics] = None,
        command_type: CommandType = CommandType.VIBE_DEPLOY,
        go_live_instruction: str = GO_LIVE_INSTRUCTION
    ):
        self.reflector = reflector
        self.metrics = metrics or PipelineMetrics()
        self.command_type = command_type
        self.go_live_instruction = go_live_instruction

    async def handle_message(self, payload: Union[str, bytes]) -> CompletionOutcome:
        """
        Process one executor output notice.

        Args:
            payload: Raw JSON from the command output channel

        Returns:
            CompletionOutcome describing how the notice ended
        """
        self.metrics.increment("completion_notices_received")

        try:
            notice = CompletionNotice.model_validate_json(payload)
        except ValidationError as e:
            logger.error(f"Error parsing command output: {e}")
            self.metrics.increment("completion_notices_invalid")
            return CompletionOutcome.DECODE_FAILED

        if notice.command_type is not self.command_type:
            logger.debug(f"Ignoring command output type: {notice.type} (not {self.command_type.value})")
            return CompletionOutcome.IGNORED_TYPE

        if notice.command != self.go_live_instruction:
            logger.debug(f"Ignoring command: {notice.command} (not {self.go_live_instruction})")
            return CompletionOutcome.IGNORED_COMMAND

        if notice.metadata is None:
            logger.warning(
                "Command output missing metadata (channel and timestamp required), cannot send reaction"
            )
            self.metrics.increment("completion_notices_unroutable")
            return CompletionOutcome.MISSING_CORRELATION

        channel = notice.metadata.channel
        ts = notice.metadata.ts
        logger.info(
            f"Processing completion for {self.command_type.value} in channel {channel}, message {ts}",
            extra={"channel": channel, "ts": ts}
        )

        await self.reflector.mark_completed(channel, ts)
        self.metrics.increment("deployments_completed")
        return CompletionOutcome.REFLECTED

    async def run(self, pubsub: PubSub, shutdown_event: asyncio.Event) -> None:
        """Consume command output notices until shutdown."""
        await run_subscription(pubsub, self.handle_message, shutdown_event, name="command output")
