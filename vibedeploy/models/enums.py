"""Closed enumerations for reaction names and command types."""

from enum import Enum
from typing import Optional


class ReactionName(str, Enum):
    """Slack reactions the bridge reads or writes."""

    ROCKET = "rocket"  # trigger on inbound, success marker on outbound
    GEAR = "gear"  # in-progress marker


class CommandType(str, Enum):
    """Type tags for commands handed to the executor."""

    VIBE_DEPLOY = "vibe-deploy"

    @classmethod
    def from_wire(cls, value: str) -> Optional["CommandType"]:
        """Map a wire string to a known type, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


TRIGGER_REACTION = ReactionName.ROCKET
IN_PROGRESS_REACTION = ReactionName.GEAR
SUCCESS_REACTION = ReactionName.ROCKET
