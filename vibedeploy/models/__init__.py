"""Data models for the Vibe Deploy bridge."""

from .allowlist import AllowlistConfig
from .deployment import (
    CompletionNotice,
    CorrelationMetadata,
    DeploymentCommand,
    StatusMutation,
)
from .enums import (
    IN_PROGRESS_REACTION,
    SUCCESS_REACTION,
    TRIGGER_REACTION,
    CommandType,
    ReactionName,
)
from .pr_metadata import PRMetadata
from .reaction_event import (
    Authorization,
    ReactionEvent,
    ReactionItem,
    ReactionPayload,
)

__all__ = [
    # Enumerations
    "ReactionName",
    "CommandType",
    "TRIGGER_REACTION",
    "IN_PROGRESS_REACTION",
    "SUCCESS_REACTION",
    # Inbound reaction models
    "Authorization",
    "ReactionItem",
    "ReactionPayload",
    "ReactionEvent",
    # PR metadata
    "PRMetadata",
    # Deployment models
    "CorrelationMetadata",
    "DeploymentCommand",
    "CompletionNotice",
    "StatusMutation",
    # Configuration models
    "AllowlistConfig",
]
