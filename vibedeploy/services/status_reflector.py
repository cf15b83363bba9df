"""
Status Reflector component.

Publishes reaction mutations so the originating Slack message shows
deployment progress: a gear while running, a rocket once live.
Publishing failures are logged and never interrupt the caller.
"""

from typing import Optional

from vibedeploy.models.deployment import StatusMutation
from vibedeploy.models.enums import IN_PROGRESS_REACTION, SUCCESS_REACTION
from vibedeploy.services.redis_client import RedisClient, RedisPublishError
from vibedeploy.utils.logging import get_logger, log_error_with_context, log_status_mutation
from vibedeploy.utils.metrics import PipelineMetrics


logger = get_logger(__name__)


class StatusReflector:
    """Publishes in-progress and completed markers for a message."""

    def __init__(self, redis_client: RedisClient, metrics: Optional[PipelineMetrics] = None):
        """
        Initialize the reflector.

        Args:
            redis_client: Shared outbound Redis client
            metrics: Optional metrics collector
        """
        self.redis_client = redis_client
        self.metrics = metrics

    async def publish(self, mutation: StatusMutation) -> bool:
        """
        Publish one mutation.

        Args:
            mutation: Reaction mutation

        Returns:
            True if published, False if the push failed (already logged)
        """
        try:
            await self.redis_client.publish_status_mutation(mutation)
        except RedisPublishError as e:
            verb = "removing" if mutation.remove else "publishing"
            log_error_with_context(
                logger,
                f"Error {verb} {mutation.reaction.value} reaction",
                e,
                channel=mutation.channel,
                ts=mutation.ts,
            )
            if self.metrics:
                self.metrics.increment("status_mutations_failed")
            return False

        log_status_mutation(logger, mutation)
        if self.metrics:
            self.metrics.increment("status_mutations_published")
        return True

    async def mark_in_progress(self, channel: str, ts: str) -> bool:
        """Add the in-progress marker to a message."""
        return await self.publish(
            StatusMutation(reaction=IN_PROGRESS_REACTION, channel=channel, ts=ts)
        )

    async def mark_completed(self, channel: str, ts: str) -> None:
        """
        Swap the in-progress marker for the success marker.

        The removal and the addition are published independently; a failed
        removal does not prevent the success marker.
        """
        await self.publish(
            StatusMutation(reaction=IN_PROGRESS_REACTION, channel=channel, ts=ts, remove=True)
        )
        await self.publish(
            StatusMutation(reaction=SUCCESS_REACTION, channel=channel, ts=ts)
        )
