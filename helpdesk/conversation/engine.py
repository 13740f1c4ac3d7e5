"""
Dialog engine: the pure transition function of the helpdesk chatbot.

``DialogEngine.handle(context, text)`` maps the current dialog context and
one raw user utterance to a ``TurnResult``: the next context, the bot
replies to show (each with a reveal delay), and the transitions fired on
the way. The engine holds no per-session state and never raises for any
string input; unmatched input re-prompts in place.

Usage:
    engine = DialogEngine(get_script_store("en"))
    context = DialogContext()
    result = engine.handle(context, "Urgent Assistance")
    assert result.context.state == ConversationState.URGENT_AUTH_EMAIL
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence

from helpdesk.config import TimingConfig, settings
from helpdesk.conversation.matching import MatchTier, OptionMatch, match_option
from helpdesk.conversation.state_machine import (
    TOPIC_STATES,
    ConversationState,
    TransitionTrigger,
    resolve_transition,
)
from helpdesk.conversation.validators import (
    extract_name_from_email,
    is_valid_email,
    parse_date_of_birth,
    parse_rating,
)
from helpdesk.schemas.message_schema import InputKind
from helpdesk.schemas.user_schema import UserRecord
from helpdesk.tools.contacts import format_contact_card, lookup_contact
from helpdesk.tools.mailer import SupportEmail
from helpdesk.tools.script_store import TOPIC_KEYS, ScriptStore
from helpdesk.utils import normalize_text

logger = logging.getLogger(__name__)

S = ConversationState
T = TransitionTrigger

# Menu position of "Urgent Assistance"; positions 0-3 follow TOPIC_KEYS
URGENT_MENU_INDEX = 4

REGISTRATION_TOPIC = "registration"
BACK_TO_MENU_LABEL = "back to menu"
SKIP_COMMAND = "skip"
RESTART_COMMAND = "restart"

# Free-text answers keep their wording unless they name an option outright
STRICT_TIERS = (MatchTier.EXACT, MatchTier.CANONICAL_EXACT, MatchTier.POSITION)

DEFAULT_TOPIC_QUESTIONS = {
    "course_registration": "What course registration problem are you experiencing?",
    "fees_financial_aid": "What fees or financial aid issue are you experiencing?",
    "assignments_exams": "What assignment or exam issue are you experiencing?",
    "course_instructor": "What issue do you have with your course instructor?",
}
DEFAULT_CLOSE_QUESTION = "Would you like to close this conversation?"
DEFAULT_CLOSE_OPTIONS = ("Yes, close conversation", "No, I need more help")

_PROBLEM_STATES = {problems: key for key, (problems, _) in TOPIC_STATES.items()}
_CLOSE_STATES = {close: key for key, (_, close) in TOPIC_STATES.items()}


class OptionAction(str, Enum):
    """What a close-question or other-topic answer asks for."""
    CLOSE = "close"
    MORE_HELP = "more_help"
    CONTACT = "contact"
    MENU = "menu"


@dataclass(frozen=True)
class BotReply:
    """A bot message to reveal ``delay`` seconds after the previous one."""
    text: str
    options: Optional[tuple[str, ...]] = None
    input_kind: Optional[InputKind] = None
    show_calendar: bool = False
    delay: float = 0.0


@dataclass(frozen=True)
class DialogContext:
    """Everything the engine needs to know about a session between turns."""
    state: ConversationState = ConversationState.INITIAL
    record: UserRecord = field(default_factory=UserRecord)
    topic: Optional[str] = None
    menu_shown: bool = False


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one user utterance."""
    context: DialogContext
    replies: tuple[BotReply, ...]
    transitions: tuple[tuple[TransitionTrigger, ConversationState], ...]
    reset_transcript: bool = False
    outbound_email: Optional[SupportEmail] = None

    @property
    def state(self) -> ConversationState:
        return self.context.state


class _Turn:
    """Mutable scratchpad for building one TurnResult."""

    def __init__(self, context: DialogContext) -> None:
        self.context = context
        self.replies: list[BotReply] = []
        self.transitions: list[tuple[TransitionTrigger, ConversationState]] = []
        self.reset_transcript = False
        self.outbound_email: Optional[SupportEmail] = None

    def say(
        self,
        text: str,
        options: Optional[Sequence[str]] = None,
        input_kind: Optional[InputKind] = None,
        show_calendar: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.replies.append(BotReply(
            text=text,
            options=tuple(options) if options else None,
            input_kind=input_kind,
            show_calendar=show_calendar,
            delay=delay,
        ))

    def go(self, trigger: TransitionTrigger, to_state: Optional[ConversationState] = None) -> None:
        new_state = resolve_transition(self.context.state, trigger, to_state)
        self.transitions.append((trigger, new_state))
        self.context = replace(self.context, state=new_state)

    def update(self, **changes) -> None:
        self.context = replace(self.context, **changes)

    def remember(self, **changes) -> None:
        self.update(record=replace(self.context.record, **changes))

    def result(self) -> TurnResult:
        return TurnResult(
            context=self.context,
            replies=tuple(self.replies),
            transitions=tuple(self.transitions),
            reset_transcript=self.reset_transcript,
            outbound_email=self.outbound_email,
        )


class DialogEngine:
    """
    Scripted dialog tree over one locale's script store.

    Branch decisions are made on canonical labels and positions, so the
    same engine drives every locale whose script lines up with the
    canonical one.
    """

    def __init__(
        self,
        script: ScriptStore,
        timing: Optional[TimingConfig] = None,
        support_email: Optional[str] = None,
    ) -> None:
        self.script = script
        self.flow = script.flow
        self.canonical = script.canonical
        self.timing = timing or settings.timing
        self.support_email = support_email or settings.support_email

        self._handlers = {
            S.INITIAL: self._handle_menu,
            S.URGENT_AUTH_EMAIL: self._handle_email,
            S.URGENT_AUTH_DOB: self._handle_dob,
            S.URGENT_TOPIC: self._handle_urgent_topic,
            S.URGENT_REGISTRATION_OPTION: self._handle_registration_option,
            S.URGENT_UNAVAILABLE: self._handle_unavailable,
            S.URGENT_EMAIL_COMPOSITION: self._handle_email_content,
            S.URGENT_EMAIL_CONFIRMATION: self._handle_email_confirmation,
            S.URGENT_EMAIL_SENT: self._handle_email_sent,
            S.URGENT_FOLLOWUP: self._handle_followup,
            S.OTHER_TOPIC: self._handle_other_topic,
            S.SURVEY_INTRO: self._handle_survey_intro,
            S.SURVEY_SATISFACTION: self._handle_survey_satisfaction,
            S.SURVEY_RESOLVED: self._handle_survey_resolved,
            S.SURVEY_COMMENTS: self._handle_survey_comments,
            S.SURVEY_COMPLETE: self._handle_survey_complete,
            S.CONVERSATION_END: self._handle_conversation_end,
        }
        for state in _PROBLEM_STATES:
            self._handlers[state] = self._handle_problem
        for state in _CLOSE_STATES:
            self._handlers[state] = self._handle_close

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def opening(self, show_options: bool = False) -> list[BotReply]:
        """Greeting and menu question that seed a transcript.

        A fresh conversation hides the menu buttons until the student's
        first message; returning to the menu shows them straight away.
        """
        initial = self.flow.initial
        return [
            BotReply(text=initial.greeting),
            BotReply(
                text=initial.question,
                options=tuple(initial.options) if show_options else None,
            ),
        ]

    def handle(self, context: DialogContext, text: str) -> TurnResult:
        """Apply one user utterance to the dialog."""
        turn = _Turn(context)

        if context.state.is_survey and normalize_text(text) == SKIP_COMMAND:
            turn.go(T.SKIP)
            self._say_conversation_end(turn)
            return turn.result()

        self._handlers[context.state](turn, text)

        result = turn.result()
        logger.debug(
            "Handled input in %s -> %s (%d replies)",
            context.state.value, result.state.value, len(result.replies),
        )
        return result

    # ------------------------------------------------------------------ #
    # Shared building blocks
    # ------------------------------------------------------------------ #

    def _reprompt(
        self,
        turn: _Turn,
        question: str,
        options: Optional[Sequence[str]] = None,
        input_kind: Optional[InputKind] = None,
    ) -> None:
        turn.go(T.INVALID_INPUT)
        turn.say(self.flow.responses.invalid_input)
        turn.say(question, options=options, input_kind=input_kind)

    def _back_to_menu(self, turn: _Turn) -> None:
        turn.update(record=UserRecord(), topic=None, menu_shown=True)
        turn.go(T.BACK_TO_MENU)
        for reply in self.opening(show_options=True):
            turn.replies.append(reply)

    def _say_conversation_end(self, turn: _Turn, delay: float = 0.0) -> None:
        end = self.flow.conversation_end
        turn.say(end.message, options=[end.restart_text], delay=delay)

    def _start_survey(self, turn: _Turn) -> None:
        survey = self.flow.survey
        if not survey.enabled:
            turn.go(T.SURVEY_FINISHED)
            self._say_conversation_end(turn)
            return
        turn.go(T.GOODBYE)
        turn.say(survey.intro, delay=self.timing.survey_intro_delay)
        turn.go(T.SURVEY_STARTED)
        turn.say(
            survey.questions[0].question,
            input_kind=InputKind.RATING,
            delay=self.timing.survey_question_delay,
        )

    def _goodbye(self, turn: _Turn) -> None:
        turn.say(self.flow.responses.goodbye)
        self._start_survey(turn)

    def _option_action(self, match: OptionMatch) -> OptionAction:
        canonical = normalize_text(match.canonical)
        if match.canonical in self.canonical.contacts:
            return OptionAction.CONTACT
        if canonical == BACK_TO_MENU_LABEL:
            return OptionAction.MENU
        if canonical.startswith("yes"):
            return OptionAction.CLOSE
        return OptionAction.MORE_HELP

    def _show_contact(self, turn: _Turn, role: str) -> None:
        contact = lookup_contact(self.flow, role)
        if contact is None:
            self._goodbye(turn)
            return
        turn.say(format_contact_card(contact, self.flow.responses.contact_header))
        turn.say(self.flow.responses.goodbye, delay=self.timing.contact_goodbye_delay)
        self._start_survey(turn)

    # ------------------------------------------------------------------ #
    # Menu
    # ------------------------------------------------------------------ #

    def _handle_menu(self, turn: _Turn, text: str) -> None:
        initial = self.flow.initial
        match = match_option(text, initial.options, self.canonical.initial.options)

        if match is None:
            if not turn.context.menu_shown:
                # First message of a fresh chat: just show the buttons
                turn.update(menu_shown=True)
                turn.go(T.INVALID_INPUT)
                turn.say(initial.question, options=initial.options)
            else:
                self._reprompt(turn, initial.question, initial.options)
            return

        turn.update(menu_shown=True)
        if match.index == URGENT_MENU_INDEX:
            turn.go(T.MENU_URGENT)
            turn.say(self.flow.urgent_assistance.auth_questions[0].question)
            return
        self._open_topic(turn, TOPIC_KEYS[match.index])

    def _open_topic(self, turn: _Turn, key: str) -> None:
        topic = self.script.topic(key)
        problems_state, _ = TOPIC_STATES[key]
        turn.update(topic=key)

        if topic.problems:
            turn.go(T.MENU_TOPIC, problems_state)
            turn.say(topic.question or DEFAULT_TOPIC_QUESTIONS[key], options=topic.problems)
        else:
            logger.info("Topic '%s' has no problem list, using the generic flow", key)
            turn.go(T.MENU_TOPIC_GENERIC)
            turn.say(topic.message or self.flow.initial.question, options=topic.options)

    # ------------------------------------------------------------------ #
    # Urgent assistance
    # ------------------------------------------------------------------ #

    def _handle_email(self, turn: _Turn, text: str) -> None:
        if not is_valid_email(text):
            turn.go(T.INVALID_INPUT)
            turn.say(self.flow.responses.invalid_email)
            return
        turn.remember(email=text.strip())
        turn.go(T.EMAIL_VALID)
        turn.say(
            self.flow.urgent_assistance.auth_questions[1].question,
            input_kind=InputKind.DATE,
            show_calendar=True,
        )

    def _handle_dob(self, turn: _Turn, text: str) -> None:
        dob = parse_date_of_birth(text)
        if dob is None:
            turn.go(T.INVALID_INPUT)
            turn.say(self.flow.responses.invalid_date, input_kind=InputKind.DATE, show_calendar=True)
            return
        name = extract_name_from_email(turn.context.record.email or "")
        turn.remember(dob=dob, name=name or None)
        turn.go(T.DOB_VALID)
        urgent = self.flow.urgent_assistance
        turn.say(urgent.topic_question, options=urgent.topics)

    def _handle_urgent_topic(self, turn: _Turn, text: str) -> None:
        urgent = self.flow.urgent_assistance
        match = match_option(text, urgent.topics, self.canonical.urgent_assistance.topics)
        if match is None:
            self._reprompt(turn, urgent.topic_question, urgent.topics)
        elif normalize_text(match.canonical) == REGISTRATION_TOPIC:
            turn.go(T.TOPIC_REGISTRATION)
            turn.say(urgent.registration_options.question, options=urgent.registration_options.options)
        else:
            turn.go(T.TOPIC_UNAVAILABLE)
            turn.say(urgent.unavailable.message, options=urgent.unavailable.options)

    def _handle_registration_option(self, turn: _Turn, text: str) -> None:
        urgent = self.flow.urgent_assistance
        registration = urgent.registration_options
        match = match_option(
            text,
            registration.options,
            self.canonical.urgent_assistance.registration_options.options,
        )
        if match is None:
            self._reprompt(turn, registration.question, registration.options)
            return
        turn.go(T.REGISTRATION_OPTION_SELECTED)
        turn.say(urgent.unavailable.message, options=urgent.unavailable.options)

    def _handle_unavailable(self, turn: _Turn, text: str) -> None:
        urgent = self.flow.urgent_assistance
        match = match_option(
            text,
            urgent.unavailable.options,
            self.canonical.urgent_assistance.unavailable.options,
        )
        if match is None:
            self._reprompt(turn, urgent.unavailable.message, urgent.unavailable.options)
            return
        if match.index != 0:
            self._goodbye(turn)
            return

        composition = urgent.email_composition
        name = turn.context.record.name or self.flow.responses.fallback_name
        turn.go(T.COMPOSE_ACCEPTED)
        turn.say(composition.greeting.replace("{name}", name))
        turn.say(composition.question, input_kind=InputKind.TEXT)

    def _handle_email_content(self, turn: _Turn, text: str) -> None:
        composition = self.flow.urgent_assistance.email_composition
        body = text.strip()
        if not body:
            turn.go(T.INVALID_INPUT)
            turn.say(composition.question, input_kind=InputKind.TEXT)
            return
        turn.remember(email_content=body)
        turn.go(T.EMAIL_COMPOSED)
        turn.say(composition.confirmation, options=composition.confirmation_options)

    def _handle_email_confirmation(self, turn: _Turn, text: str) -> None:
        composition = self.flow.urgent_assistance.email_composition
        match = match_option(
            text,
            composition.confirmation_options,
            self.canonical.urgent_assistance.email_composition.confirmation_options,
        )
        if match is None:
            self._reprompt(turn, composition.confirmation, composition.confirmation_options)
            return
        if match.index != 0:
            self._goodbye(turn)
            return

        record = turn.context.record
        turn.outbound_email = SupportEmail(
            recipient=self.support_email,
            sender=record.email or "",
            student_name=record.name or "",
            date_of_birth=record.dob or "",
            body=record.email_content or "",
        )
        turn.say(composition.sending)
        turn.go(T.EMAIL_CONFIRMED)
        turn.say(composition.sent, delay=self.timing.email_send_delay)
        self._ask_followup(turn)

    def _ask_followup(self, turn: _Turn) -> None:
        composition = self.flow.urgent_assistance.email_composition
        turn.go(T.EMAIL_SENT)
        turn.say(composition.follow_up, options=composition.follow_up_options)

    def _handle_email_sent(self, turn: _Turn, text: str) -> None:
        self._ask_followup(turn)

    def _handle_followup(self, turn: _Turn, text: str) -> None:
        composition = self.flow.urgent_assistance.email_composition
        match = match_option(
            text,
            composition.follow_up_options,
            self.canonical.urgent_assistance.email_composition.follow_up_options,
        )
        if match is None:
            self._reprompt(turn, composition.follow_up, composition.follow_up_options)
        elif match.index == 0:
            self._back_to_menu(turn)
        else:
            self._start_survey(turn)

    # ------------------------------------------------------------------ #
    # Topic sub-flows
    # ------------------------------------------------------------------ #

    def _close_options(self, key: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
        localized = self.script.topic(key).close_options or DEFAULT_CLOSE_OPTIONS
        canonical = self.script.canonical_topic(key).close_options or DEFAULT_CLOSE_OPTIONS
        return tuple(localized), tuple(canonical)

    def _handle_problem(self, turn: _Turn, text: str) -> None:
        key = _PROBLEM_STATES[turn.context.state]
        topic = self.script.topic(key)
        match = match_option(text, topic.problems, self.script.canonical_topic(key).problems)

        description = None
        if match is not None:
            description = topic.problem_descriptions.get(match.canonical)
        if description is None:
            description = topic.problem_descriptions.get(text.strip())
        if description is None:
            description = topic.message
        if description:
            turn.say(description)

        options, _ = self._close_options(key)
        turn.update(topic=key)
        turn.go(T.PROBLEM_SELECTED)
        turn.say(
            topic.close_conversation_question or DEFAULT_CLOSE_QUESTION,
            options=options,
            delay=self.timing.close_question_delay,
        )

    def _handle_close(self, turn: _Turn, text: str) -> None:
        key = _CLOSE_STATES[turn.context.state]
        topic = self.script.topic(key)
        options, canonical = self._close_options(key)
        match = match_option(text, options, canonical)
        if match is None:
            self._reprompt(turn, topic.close_conversation_question or DEFAULT_CLOSE_QUESTION, options)
            return

        action = self._option_action(match)
        if action == OptionAction.CLOSE:
            self._goodbye(turn)
        elif action == OptionAction.MENU:
            self._back_to_menu(turn)
        elif action == OptionAction.CONTACT:
            self._show_contact(turn, match.canonical)
        else:
            turn.update(topic=key)
            turn.go(T.MORE_HELP)
            turn.say(topic.message or self.flow.initial.question, options=topic.options)

    def _handle_other_topic(self, turn: _Turn, text: str) -> None:
        key = turn.context.topic
        match = None
        if key is not None:
            match = match_option(
                text,
                self.script.topic(key).options,
                self.script.canonical_topic(key).options,
            )
        if match is None:
            roles = tuple(self.canonical.contacts)
            match = match_option(text, roles + ("Back to Menu",))

        action = self._option_action(match) if match is not None else OptionAction.CLOSE
        if action == OptionAction.MENU:
            self._back_to_menu(turn)
        elif action == OptionAction.CONTACT:
            self._show_contact(turn, match.canonical)
        else:
            self._goodbye(turn)

    # ------------------------------------------------------------------ #
    # Survey
    # ------------------------------------------------------------------ #

    def _handle_survey_intro(self, turn: _Turn, text: str) -> None:
        turn.go(T.SURVEY_STARTED)
        turn.say(self.flow.survey.questions[0].question, input_kind=InputKind.RATING)

    def _handle_survey_satisfaction(self, turn: _Turn, text: str) -> None:
        questions = self.flow.survey.questions
        rating = parse_rating(text)
        if rating is None:
            turn.go(T.INVALID_INPUT)
            turn.say(self.flow.responses.invalid_rating)
            turn.say(questions[0].question, input_kind=InputKind.RATING)
            return
        record = turn.context.record
        turn.remember(survey=replace(record.survey, satisfaction=rating))
        turn.go(T.RATING_GIVEN)
        turn.say(questions[1].question, options=questions[1].options, input_kind=InputKind.BOOLEAN)

    def _handle_survey_resolved(self, turn: _Turn, text: str) -> None:
        questions = self.flow.survey.questions
        answer = text.strip()
        if not answer:
            self._reprompt(turn, questions[1].question, questions[1].options, InputKind.BOOLEAN)
            return
        match = match_option(answer, questions[1].options, self.canonical.survey.questions[1].options)
        if match is not None and match.tier in STRICT_TIERS:
            answer = match.label
        record = turn.context.record
        turn.remember(survey=replace(record.survey, resolved=answer))
        turn.go(T.RESOLVED_GIVEN)
        turn.say(questions[2].question, input_kind=InputKind.TEXT)

    def _handle_survey_comments(self, turn: _Turn, text: str) -> None:
        record = turn.context.record
        turn.remember(survey=replace(record.survey, comments=text.strip()))
        turn.go(T.COMMENTS_GIVEN)
        turn.say(self.flow.survey.thank_you)
        turn.go(T.SURVEY_FINISHED)
        self._say_conversation_end(turn, delay=self.timing.survey_end_delay)

    def _handle_survey_complete(self, turn: _Turn, text: str) -> None:
        turn.go(T.SURVEY_FINISHED)
        self._say_conversation_end(turn)

    # ------------------------------------------------------------------ #
    # Conversation end
    # ------------------------------------------------------------------ #

    def _handle_conversation_end(self, turn: _Turn, text: str) -> None:
        needle = normalize_text(text)
        restart_labels = {
            RESTART_COMMAND,
            normalize_text(self.flow.conversation_end.restart_text),
            normalize_text(self.canonical.conversation_end.restart_text),
        }
        if needle not in restart_labels:
            turn.go(T.INVALID_INPUT)
            turn.say(
                self.flow.responses.invalid_input,
                options=[self.flow.conversation_end.restart_text],
            )
            return

        turn.go(T.RESTART)
        turn.update(record=UserRecord(), topic=None, menu_shown=False)
        turn.reset_transcript = True
        turn.replies.extend(self.opening())
