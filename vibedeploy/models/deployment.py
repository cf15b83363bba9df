"""Deployment command, completion notice and status mutation models."""

import json
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .enums import CommandType, ReactionName


class CorrelationMetadata(BaseModel):
    """Channel and message timestamp used to route status back to Slack."""

    model_config = ConfigDict(frozen=True)

    channel: str = ""
    ts: str = ""


class DeploymentCommand(BaseModel):
    """Command pushed onto the executor's list."""

    model_config = ConfigDict(frozen=True)

    repo: str
    branch: str
    type: CommandType = CommandType.VIBE_DEPLOY
    dir: str
    commands: List[str]
    metadata: Optional[CorrelationMetadata] = None

    def to_json(self) -> str:
        """Serialize for the wire, omitting an absent correlation block."""
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_json(cls, payload: str) -> "DeploymentCommand":
        return cls.model_validate_json(payload)


class CompletionNotice(BaseModel):
    """Output notice published by the executor after each command."""

    model_config = ConfigDict(frozen=True)

    metadata: Optional[CorrelationMetadata] = None
    type: str = ""
    command: str = ""
    output: str = ""

    @property
    def command_type(self) -> Optional[CommandType]:
        """Known command type for this notice, None for foreign types."""
        return CommandType.from_wire(self.type)


class StatusMutation(BaseModel):
    """Request to add or remove a reaction on a Slack message."""

    model_config = ConfigDict(frozen=True)

    reaction: ReactionName
    channel: str
    ts: str
    remove: bool = False

    def to_json(self) -> str:
        """Serialize for the wire; `remove` is only written when true."""
        data = self.model_dump(mode="json")
        if not self.remove:
            data.pop("remove")
        return json.dumps(data)
