"""
Utility modules for the Vibe Deploy bridge.
"""

from vibedeploy.utils.logging import (
    get_logger,
    setup_logging,
    parse_log_level,
    log_reaction_event,
    log_status_mutation,
    log_api_call,
    log_error_with_context,
)
from vibedeploy.utils.metrics import (
    PipelineMetrics,
    track_api_call,
    emit_metric,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "parse_log_level",
    "log_reaction_event",
    "log_status_mutation",
    "log_api_call",
    "log_error_with_context",
    "PipelineMetrics",
    "track_api_call",
    "emit_metric",
]
