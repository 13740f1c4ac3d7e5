"""
Chat session: the stateful wrapper around the dialog engine.

A ``ChatSession`` owns one student's conversation. It feeds input to the
engine, applies the returned context, keeps the transcript, mirrors
every transition into a ``ConversationStateMachine`` for tracing, and
hands confirmed support emails to the mailer.

Usage:
    session = ChatSession(locale="en")
    session.start()
    for delivery in session.submit("Urgent Assistance"):
        print(delivery.message.text)
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from helpdesk.config import settings
from helpdesk.conversation.engine import BotReply, DialogContext, DialogEngine, TurnResult
from helpdesk.conversation.state_machine import ConversationState, ConversationStateMachine
from helpdesk.logging_context import get_session_logger, set_session_id
from helpdesk.schemas.message_schema import (
    ConversationTranscript,
    InputKind,
    Message,
    Sender,
)
from helpdesk.schemas.user_schema import UserRecord
from helpdesk.tools import mailer
from helpdesk.tools.script_store import get_script_store
from helpdesk.utils import format_date_input

logger = get_session_logger(__name__)


@dataclass(frozen=True)
class Delivery:
    """A transcript message and how long to wait before revealing it."""
    message: Message
    delay: float = 0.0


class ChatSession:
    """One student's conversation with the helpdesk bot."""

    def __init__(
        self,
        locale: Optional[str] = None,
        session_id: Optional[str] = None,
        engine: Optional[DialogEngine] = None,
    ) -> None:
        self.locale = locale or settings.script.locale
        self.session_id = session_id or f"CHAT-{uuid.uuid4().hex[:8]}"
        self.engine = engine or DialogEngine(get_script_store(self.locale))
        self.context = DialogContext()
        self.state_machine = ConversationStateMachine()
        self.messages: list[Message] = []
        self.sent_emails: list[str] = []
        self.started_at = datetime.now(timezone.utc)
        self._next_id = 1
        set_session_id(self.session_id)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> list[Delivery]:
        """Seed the transcript with the greeting and the menu question."""
        set_session_id(self.session_id)
        logger.info("Session started (locale=%s)", self.locale)
        return self._append_replies(self.engine.opening())

    def restart(self) -> list[Delivery]:
        """Drop everything collected so far and greet again."""
        set_session_id(self.session_id)
        self._reset()
        logger.info("Session restarted")
        return self._append_replies(self.engine.opening())

    def _reset(self) -> None:
        self.context = DialogContext()
        self.state_machine.reset()
        self.messages = []
        self._next_id = 1
        self.started_at = datetime.now(timezone.utc)

    # ------------------------------------------------------------------ #
    # Input
    # ------------------------------------------------------------------ #

    def submit(self, text: str) -> list[Delivery]:
        """
        Submit one typed message.

        Whitespace-only input is ignored and nothing is recorded.

        Returns:
            The bot messages produced by this turn, in reveal order.
        """
        cleaned = text.strip()
        if not cleaned:
            return []

        set_session_id(self.session_id)
        result = self.engine.handle(self.context, cleaned)

        if result.reset_transcript:
            self._reset()
            self.context = result.context
            logger.info("Session restarted from conversation end")
        else:
            self._append(cleaned, Sender.USER)
            self._apply(result)
        return self._append_replies(result.replies)

    def select_option(self, label: str) -> list[Delivery]:
        """Click an option button."""
        return self.submit(label)

    def select_rating(self, rating: int) -> list[Delivery]:
        """Click a star in the rating widget."""
        return self.submit(str(rating))

    def select_date(self, value: date) -> list[Delivery]:
        """Pick a date in the calendar widget."""
        return self.submit(format_date_input(value))

    def _apply(self, result: TurnResult) -> None:
        for trigger, to_state in result.transitions:
            self.state_machine.transition(trigger, to_state)
        self.context = result.context

        if result.outbound_email is not None:
            sent = mailer.send_support_email(result.outbound_email)
            if sent["success"]:
                self.sent_emails.append(sent["reference"])
            else:
                logger.warning("Support email not sent: %s", sent["message"])

    # ------------------------------------------------------------------ #
    # Transcript
    # ------------------------------------------------------------------ #

    def _clock(self) -> datetime:
        """Current time, never earlier than the last message already shown."""
        now = datetime.now(timezone.utc)
        if self.messages:
            return max(now, self.messages[-1].timestamp)
        return now

    def _append(
        self,
        text: str,
        sender: Sender,
        reply: Optional[BotReply] = None,
        timestamp: Optional[datetime] = None,
    ) -> Message:
        message = Message(
            id=self._next_id,
            text=text,
            sender=sender,
            timestamp=timestamp or self._clock(),
            options=list(reply.options) if reply and reply.options else None,
            input_kind=reply.input_kind if reply else None,
            show_calendar=reply.show_calendar if reply else False,
        )
        self._next_id += 1
        self.messages.append(message)
        return message

    def _append_replies(self, replies) -> list[Delivery]:
        deliveries = []
        reveal_at = self._clock()
        for reply in replies:
            reveal_at += timedelta(seconds=reply.delay)
            message = self._append(reply.text, Sender.BOT, reply, reveal_at)
            deliveries.append(Delivery(message=message, delay=reply.delay))
        return deliveries

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ConversationState:
        return self.context.state

    @property
    def record(self) -> UserRecord:
        return self.context.record

    @property
    def is_finished(self) -> bool:
        return self.context.state == ConversationState.CONVERSATION_END

    @property
    def current_options(self) -> Optional[list[str]]:
        """Buttons attached to the latest bot message, if any."""
        for message in reversed(self.messages):
            if message.sender == Sender.BOT:
                return message.options
        return None

    @property
    def pending_input(self) -> Optional[InputKind]:
        """Input widget the latest bot message asks for."""
        for message in reversed(self.messages):
            if message.sender == Sender.BOT:
                return message.input_kind
        return None

    def export(self) -> ConversationTranscript:
        """Snapshot the conversation as a serializable transcript."""
        return ConversationTranscript(
            session_id=self.session_id,
            locale=self.locale,
            started_at=self.started_at,
            messages=list(self.messages),
            final_state=self.context.state.value,
            state_trace=self.state_machine.get_state_trace(),
            user_record=self.context.record.to_dict(),
            metadata={
                "topic": self.context.topic,
                "sent_emails": list(self.sent_emails),
            },
        )
