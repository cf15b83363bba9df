"""
Reaction Processor component.

Primary pipeline: reaction event -> filter -> metadata resolution ->
allowlist -> in-progress marker -> deployment command.
"""

import asyncio
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError
from redis.asyncio.client import PubSub

from vibedeploy.models.deployment import CorrelationMetadata
from vibedeploy.services.allowlist import RepositoryAllowlist
from vibedeploy.services.command_synthesizer import create_deployment_command
from vibedeploy.services.event_filter import (
    FilterDecision,
    decode_reaction_event,
    evaluate_reaction_event,
)
from vibedeploy.services.metadata_resolver import MetadataResolutionError, MetadataResolver
from vibedeploy.services.redis_client import RedisClient, RedisPublishError
from vibedeploy.services.status_reflector import StatusReflector
from vibedeploy.services.subscription import run_subscription
from vibedeploy.utils.logging import get_logger, log_error_with_context, log_reaction_event
from vibedeploy.utils.metrics import PipelineMetrics


logger = get_logger(__name__)


class ReactionOutcome(str, Enum):
    """What happened to one reaction event."""

    DECODE_FAILED = "decode_failed"
    FILTERED = "filtered"
    RESOLUTION_FAILED = "resolution_failed"
    NO_METADATA = "no_metadata"
    NOT_ALLOWED = "not_allowed"
    PUBLISH_FAILED = "publish_failed"
    COMMAND_PUBLISHED = "command_published"


class ReactionProcessor:
    """Turns qualifying reactions into deployment commands."""

    def __init__(
        self,
        resolver: MetadataResolver,
        reflector: StatusReflector,
        redis_client: RedisClient,
        base_dir: str,
        allowlist: Optional[RepositoryAllowlist] = None,
        metrics: Optional[PipelineMetrics] = None
    ):
        """
        Initialize the processor.

        Args:
            resolver: Slack metadata resolver
            reflector: Status reflector for the in-progress marker
            redis_client: Shared outbound Redis client
            base_dir: Directory holding repository checkouts
            allowlist: Repository allowlist, disabled if None
            metrics: Optional metrics collector
        """
        self.resolver = resolver
        self.reflector = reflector
        self.redis_client = redis_client
        self.base_dir = base_dir
        self.allowlist = allowlist or RepositoryAllowlist()
        self.metrics = metrics or PipelineMetrics()

    async def handle_message(self, payload: Union[str, bytes]) -> ReactionOutcome:
        """
        Process one relayed reaction event.

        Every failure is terminal for this event only: it is logged and
        the event is dropped.

        Args:
            payload: Raw JSON from the reaction channel

        Returns:
            ReactionOutcome describing how the event ended
        """
        self.metrics.increment("reaction_events_received")

        try:
            event = decode_reaction_event(payload)
        except ValidationError as e:
            logger.error(f"Error parsing reaction event: {e}")
            self.metrics.increment("reaction_events_invalid")
            return ReactionOutcome.DECODE_FAILED

        reaction = event.event.reaction
        channel = event.event.item.channel
        ts = event.event.item.ts

        decision = evaluate_reaction_event(event)
        if decision is not FilterDecision.ACCEPTED:
            self._log_filtered(decision, event.event.user, reaction, event.event.item.type, channel, ts)
            self.metrics.increment(f"reaction_events_{decision.value}")
            return ReactionOutcome.FILTERED

        log_reaction_event(logger, channel=channel, ts=ts, reaction=reaction, user=event.event.user)
        event_logger = logger.with_context(channel=channel, ts=ts)

        try:
            metadata = await self.resolver.resolve(channel, ts)
        except MetadataResolutionError as e:
            log_error_with_context(event_logger, "Error getting message metadata", e)
            self.metrics.increment("metadata_resolution_errors")
            return ReactionOutcome.RESOLUTION_FAILED

        if metadata is None:
            event_logger.debug("No PR metadata found in message, skipping")
            self.metrics.increment("metadata_missing")
            return ReactionOutcome.NO_METADATA

        event_logger = event_logger.with_context(repository=metadata.repository, branch=metadata.branch)
        event_logger.info(
            f"Found PR metadata: {metadata.repository} #{metadata.pr_number} (branch: {metadata.branch})"
        )

        if not self.allowlist.is_allowed(metadata.repository):
            event_logger.info(
                f"Repository {metadata.repository} is not in the allowed list, ignoring reaction"
            )
            self.metrics.increment("repositories_not_allowed")
            return ReactionOutcome.NOT_ALLOWED

        # The deployment proceeds even if the marker cannot be published
        await self.reflector.mark_in_progress(channel, ts)

        command = create_deployment_command(
            metadata,
            self.base_dir,
            CorrelationMetadata(channel=channel, ts=ts),
        )

        try:
            await self.redis_client.enqueue_deployment_command(command)
        except RedisPublishError as e:
            log_error_with_context(event_logger, "Error publishing deployment command", e)
            self.metrics.increment("deployment_commands_failed")
            return ReactionOutcome.PUBLISH_FAILED

        event_logger.info(
            f"Successfully published deployment command for {metadata.repository} branch {metadata.branch}"
        )
        self.metrics.increment("deployment_commands_published")
        return ReactionOutcome.COMMAND_PUBLISHED

    def _log_filtered(
        self,
        decision: FilterDecision,
        user: str,
        reaction: str,
        item_type: str,
        channel: str,
        ts: str
    ) -> None:
        if decision is FilterDecision.WRONG_REACTION:
            logger.debug(f"Ignoring reaction: {reaction}")
        elif decision is FilterDecision.WRONG_ITEM_TYPE:
            logger.debug(f"Ignoring item type: {item_type} (not message)")
        elif decision is FilterDecision.SELF_REACTION:
            logger.info(
                f"Ignoring {reaction} reaction from bot user {user} on message {ts} in channel {channel}",
                extra={"channel": channel, "ts": ts}
            )

    async def run(self, pubsub: PubSub, shutdown_event: asyncio.Event) -> None:
        """Consume reaction events until shutdown."""
        await run_subscription(pubsub, self.handle_message, shutdown_event, name="reaction events")
