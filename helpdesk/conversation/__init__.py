from helpdesk.conversation.engine import BotReply, DialogContext, DialogEngine, TurnResult
from helpdesk.conversation.matching import OptionMatch, match_option
from helpdesk.conversation.session import ChatSession, Delivery
from helpdesk.conversation.state_machine import (
    ConversationState,
    ConversationStateMachine,
    TransitionTrigger,
)

__all__ = [
    "ChatSession",
    "Delivery",
    "DialogEngine",
    "DialogContext",
    "TurnResult",
    "BotReply",
    "ConversationStateMachine",
    "ConversationState",
    "TransitionTrigger",
    "OptionMatch",
    "match_option",
]
