"""Chat message and transcript schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Sender(str, Enum):
    BOT = "bot"
    USER = "user"


class InputKind(str, Enum):
    """Input affordance the renderer should offer after a bot message."""

    TEXT = "text"
    DATE = "date"
    RATING = "rating"
    BOOLEAN = "boolean"


class Message(BaseModel):
    """A single immutable entry in the chat transcript."""

    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    sender: Sender
    timestamp: datetime
    options: Optional[list[str]] = None
    input_kind: Optional[InputKind] = None
    show_calendar: bool = False


class ConversationTranscript(BaseModel):
    """Complete chat record, exportable as JSON."""

    session_id: str
    locale: str
    started_at: datetime
    messages: list[Message]
    final_state: str
    state_trace: list[str] = Field(default_factory=list)
    user_record: dict[str, Any] = Field(default_factory=dict)
    metadata: Optional[dict[str, Any]] = None
