"""
Event Filter component.

Decodes relayed reaction events and decides whether one should start a
deployment: the trigger reaction, on a message, not added by the bot.
"""

from enum import Enum
from typing import Union

from vibedeploy.models.enums import TRIGGER_REACTION, ReactionName
from vibedeploy.models.reaction_event import ReactionEvent


MESSAGE_ITEM_TYPE = "message"


class FilterDecision(str, Enum):
    """Outcome of filtering a reaction event."""

    ACCEPTED = "accepted"
    WRONG_REACTION = "wrong_reaction"
    WRONG_ITEM_TYPE = "wrong_item_type"
    SELF_REACTION = "self_reaction"


def decode_reaction_event(payload: Union[str, bytes]) -> ReactionEvent:
    """
    Decode a raw pub/sub payload.

    Args:
        payload: JSON text from the reaction channel

    Returns:
        Parsed ReactionEvent

    Raises:
        pydantic.ValidationError: If the payload is not a valid event
    """
    return ReactionEvent.model_validate_json(payload)


def evaluate_reaction_event(
    event: ReactionEvent,
    trigger: ReactionName = TRIGGER_REACTION
) -> FilterDecision:
    """
    Decide whether a reaction event qualifies for processing.

    Checks run in order: reaction name (exact, case-sensitive), item type,
    then self-reaction suppression against the event's bot authorizations.

    Args:
        event: Decoded reaction event
        trigger: Reaction that starts a deployment

    Returns:
        FilterDecision.ACCEPTED or the reason the event was rejected
    """
    if event.event.reaction != trigger.value:
        return FilterDecision.WRONG_REACTION

    if event.event.item.type != MESSAGE_ITEM_TYPE:
        return FilterDecision.WRONG_ITEM_TYPE

    if event.is_from_bot_user():
        return FilterDecision.SELF_REACTION

    return FilterDecision.ACCEPTED
