"""Inbound Slack reaction event models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Authorization(BaseModel):
    """Authorization record attached to a relayed Slack event."""

    model_config = ConfigDict(frozen=True)

    user_id: str = ""
    is_bot: bool = False


class ReactionItem(BaseModel):
    """The item a reaction was added to."""

    model_config = ConfigDict(frozen=True)

    type: str = ""  # 'message', 'file', ...
    channel: str = ""
    ts: str = ""


class ReactionPayload(BaseModel):
    """The `event` body of a reaction_added notification."""

    model_config = ConfigDict(frozen=True)

    type: str = ""
    user: str = ""
    reaction: str = ""
    item: ReactionItem = Field(default_factory=ReactionItem)


class ReactionEvent(BaseModel):
    """Reaction event as relayed onto the Redis pub/sub channel."""

    model_config = ConfigDict(frozen=True)

    event: ReactionPayload = Field(default_factory=ReactionPayload)
    authorizations: List[Authorization] = []

    @field_validator("authorizations", mode="before")
    @classmethod
    def _null_means_empty(cls, value: Optional[list]) -> list:
        return [] if value is None else value

    def is_from_bot_user(self) -> bool:
        """True if the reacting user is one of the bot authorizations."""
        return any(
            auth.is_bot and auth.user_id == self.event.user
            for auth in self.authorizations
        )
