"""
Metadata Resolver component.

Fetches the reacted-to message from Slack and extracts the pull request
metadata attached to it. Three outcomes are possible:
- PRMetadata when the message carries usable metadata
- None when it carries none, or metadata without repository/branch
- MetadataResolutionError when Slack cannot deliver the message
"""

from typing import Optional

from pydantic import ValidationError
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from vibedeploy.models.pr_metadata import PRMetadata
from vibedeploy.utils.logging import get_logger
from vibedeploy.utils.metrics import PipelineMetrics, track_api_call


logger = get_logger(__name__)


class MetadataResolutionError(Exception):
    """Raised when a message's metadata cannot be fetched or parsed."""
    pass


class MetadataResolver:
    """Resolves PR metadata for a Slack message reference."""

    def __init__(
        self,
        slack_client: AsyncWebClient,
        metrics: Optional[PipelineMetrics] = None
    ):
        """
        Initialize the resolver.

        Args:
            slack_client: Slack Web API client (bot token)
            metrics: Optional metrics collector for API timing
        """
        self.slack_client = slack_client
        self.metrics = metrics

    async def resolve(self, channel: str, ts: str) -> Optional[PRMetadata]:
        """
        Fetch one message at `ts` and return its PR metadata.

        Args:
            channel: Slack channel ID
            ts: Message timestamp

        Returns:
            PRMetadata, or None if the message has no usable metadata

        Raises:
            MetadataResolutionError: On API failure, empty history, or
                metadata that cannot be parsed
        """
        try:
            async with track_api_call(
                self.metrics,
                "slack",
                logger,
                endpoint="conversations.history",
                method="GET"
            ):
                response = await self.slack_client.conversations_history(
                    channel=channel,
                    latest=ts,
                    inclusive=True,
                    limit=1,
                    include_all_metadata=True,
                )
        except SlackApiError as e:
            error = e.response.get("error", "unknown error")
            raise MetadataResolutionError(f"failed to get conversation history: {error}") from e
        except Exception as e:
            raise MetadataResolutionError(f"failed to get conversation history: {e}") from e

        messages = response.get("messages") or []
        if not messages:
            raise MetadataResolutionError("no messages found")

        metadata = messages[0].get("metadata") or {}
        event_payload = metadata.get("event_payload") if isinstance(metadata, dict) else None
        if not event_payload:
            return None

        try:
            pr_metadata = PRMetadata.model_validate(event_payload)
        except ValidationError as e:
            raise MetadataResolutionError(f"failed to parse PR metadata: {e}") from e

        if not pr_metadata.has_required_fields():
            logger.debug(
                "Message metadata lacks repository or branch",
                extra={"channel": channel, "ts": ts}
            )
            return None

        return pr_metadata
