"""Business logic services package."""

from vibedeploy.services.redis_client import (
    RedisClient,
    RedisConnectionError,
    RedisPublishError,
    create_redis_client
)
from vibedeploy.services.event_filter import (
    FilterDecision,
    decode_reaction_event,
    evaluate_reaction_event
)
from vibedeploy.services.metadata_resolver import (
    MetadataResolver,
    MetadataResolutionError
)
from vibedeploy.services.allowlist import (
    AllowlistConfigError,
    RepositoryAllowlist,
    is_repo_allowed,
    load_allowlist
)
from vibedeploy.services.command_synthesizer import (
    GO_LIVE_INSTRUCTION,
    build_instructions,
    create_deployment_command
)
from vibedeploy.services.status_reflector import StatusReflector
from vibedeploy.services.reaction_processor import ReactionOutcome, ReactionProcessor
from vibedeploy.services.completion_listener import CompletionListener, CompletionOutcome

__all__ = [
    'RedisClient',
    'RedisConnectionError',
    'RedisPublishError',
    'create_redis_client',
    'FilterDecision',
    'decode_reaction_event',
    'evaluate_reaction_event',
    'MetadataResolver',
    'MetadataResolutionError',
    'AllowlistConfigError',
    'RepositoryAllowlist',
    'is_repo_allowed',
    'load_allowlist',
    'GO_LIVE_INSTRUCTION',
    'build_instructions',
    'create_deployment_command',
    'StatusReflector',
    'ReactionOutcome',
    'ReactionProcessor',
    'CompletionListener',
    'CompletionOutcome'
]
