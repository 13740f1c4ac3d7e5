"""
Finite state machine for the helpdesk dialog tree.

Defines the 25 conversation states and the explicit transition table.
The dialog engine never assigns a state directly: it picks a trigger and
resolves the next state through ``resolve_transition``, so every edge of
the dialog tree is declared here.

Usage:
    sm = ConversationStateMachine()
    sm.transition(TransitionTrigger.MENU_URGENT)
    assert sm.current_state == ConversationState.URGENT_AUTH_EMAIL
"""

import logging
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    """All possible states in a conversation lifecycle."""
    INITIAL = "initial"
    URGENT_AUTH_EMAIL = "urgent_auth_email"
    URGENT_AUTH_DOB = "urgent_auth_dob"
    URGENT_TOPIC = "urgent_topic"
    URGENT_REGISTRATION_OPTION = "urgent_registration_option"
    URGENT_UNAVAILABLE = "urgent_unavailable"
    URGENT_EMAIL_COMPOSITION = "urgent_email_composition"
    URGENT_EMAIL_CONFIRMATION = "urgent_email_confirmation"
    URGENT_EMAIL_SENT = "urgent_email_sent"
    URGENT_FOLLOWUP = "urgent_followup"
    COURSE_REGISTRATION_PROBLEMS = "course_registration_problems"
    COURSE_REGISTRATION_CLOSE = "course_registration_close"
    FEES_FINANCIAL_AID_PROBLEMS = "fees_financial_aid_problems"
    FEES_FINANCIAL_AID_CLOSE = "fees_financial_aid_close"
    ASSIGNMENTS_EXAMS_PROBLEMS = "assignments_exams_problems"
    ASSIGNMENTS_EXAMS_CLOSE = "assignments_exams_close"
    COURSE_INSTRUCTOR_PROBLEMS = "course_instructor_problems"
    COURSE_INSTRUCTOR_CLOSE = "course_instructor_close"
    OTHER_TOPIC = "other_topic"
    SURVEY_INTRO = "survey_intro"
    SURVEY_SATISFACTION = "survey_satisfaction"
    SURVEY_RESOLVED = "survey_resolved"
    SURVEY_COMMENTS = "survey_comments"
    SURVEY_COMPLETE = "survey_complete"
    CONVERSATION_END = "conversation_end"

    @property
    def is_survey(self) -> bool:
        return self.value.startswith("survey_")


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    INVALID_INPUT = "invalid_input"
    MENU_URGENT = "menu_urgent"
    MENU_TOPIC = "menu_topic"
    MENU_TOPIC_GENERIC = "menu_topic_generic"
    EMAIL_VALID = "email_valid"
    DOB_VALID = "dob_valid"
    TOPIC_REGISTRATION = "topic_registration"
    TOPIC_UNAVAILABLE = "topic_unavailable"
    REGISTRATION_OPTION_SELECTED = "registration_option_selected"
    COMPOSE_ACCEPTED = "compose_accepted"
    EMAIL_COMPOSED = "email_composed"
    EMAIL_CONFIRMED = "email_confirmed"
    EMAIL_SENT = "email_sent"
    PROBLEM_SELECTED = "problem_selected"
    MORE_HELP = "more_help"
    BACK_TO_MENU = "back_to_menu"
    GOODBYE = "goodbye"
    SURVEY_STARTED = "survey_started"
    RATING_GIVEN = "rating_given"
    RESOLVED_GIVEN = "resolved_given"
    COMMENTS_GIVEN = "comments_given"
    SURVEY_FINISHED = "survey_finished"
    SKIP = "skip"
    RESTART = "restart"


# Per-topic (problems state, close state)
TOPIC_STATES: dict[str, tuple[ConversationState, ConversationState]] = {
    "course_registration": (
        ConversationState.COURSE_REGISTRATION_PROBLEMS,
        ConversationState.COURSE_REGISTRATION_CLOSE,
    ),
    "fees_financial_aid": (
        ConversationState.FEES_FINANCIAL_AID_PROBLEMS,
        ConversationState.FEES_FINANCIAL_AID_CLOSE,
    ),
    "assignments_exams": (
        ConversationState.ASSIGNMENTS_EXAMS_PROBLEMS,
        ConversationState.ASSIGNMENTS_EXAMS_CLOSE,
    ),
    "course_instructor": (
        ConversationState.COURSE_INSTRUCTOR_PROBLEMS,
        ConversationState.COURSE_INSTRUCTOR_CLOSE,
    ),
}

SURVEY_STATES = [s for s in ConversationState if s.is_survey]

# Sub-flow endings that say goodbye and hand over to the survey
GOODBYE_STATES = [
    ConversationState.URGENT_UNAVAILABLE,
    ConversationState.URGENT_EMAIL_CONFIRMATION,
    ConversationState.URGENT_FOLLOWUP,
    ConversationState.OTHER_TOPIC,
    *[close for _, close in TOPIC_STATES.values()],
]


@dataclass(frozen=True)
class Transition:
    """A single valid state transition."""
    from_state: ConversationState
    to_state: ConversationState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: ConversationState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


def _build_transitions() -> list[Transition]:
    S = ConversationState
    T = TransitionTrigger

    transitions = [
        # --- Menu ---
        Transition(S.INITIAL, S.URGENT_AUTH_EMAIL, T.MENU_URGENT),
        Transition(S.INITIAL, S.OTHER_TOPIC, T.MENU_TOPIC_GENERIC),

        # --- Urgent assistance ---
        Transition(S.URGENT_AUTH_EMAIL, S.URGENT_AUTH_DOB, T.EMAIL_VALID),
        Transition(S.URGENT_AUTH_DOB, S.URGENT_TOPIC, T.DOB_VALID),
        Transition(S.URGENT_TOPIC, S.URGENT_REGISTRATION_OPTION, T.TOPIC_REGISTRATION),
        Transition(S.URGENT_TOPIC, S.URGENT_UNAVAILABLE, T.TOPIC_UNAVAILABLE),
        Transition(S.URGENT_REGISTRATION_OPTION, S.URGENT_UNAVAILABLE,
                   T.REGISTRATION_OPTION_SELECTED),
        Transition(S.URGENT_UNAVAILABLE, S.URGENT_EMAIL_COMPOSITION, T.COMPOSE_ACCEPTED),
        Transition(S.URGENT_EMAIL_COMPOSITION, S.URGENT_EMAIL_CONFIRMATION, T.EMAIL_COMPOSED),
        Transition(S.URGENT_EMAIL_CONFIRMATION, S.URGENT_EMAIL_SENT, T.EMAIL_CONFIRMED),
        Transition(S.URGENT_EMAIL_SENT, S.URGENT_FOLLOWUP, T.EMAIL_SENT),
        Transition(S.URGENT_FOLLOWUP, S.INITIAL, T.BACK_TO_MENU),

        # --- Generic topic ---
        Transition(S.OTHER_TOPIC, S.INITIAL, T.BACK_TO_MENU),

        # --- Survey ---
        Transition(S.SURVEY_INTRO, S.SURVEY_SATISFACTION, T.SURVEY_STARTED),
        Transition(S.SURVEY_SATISFACTION, S.SURVEY_RESOLVED, T.RATING_GIVEN),
        Transition(S.SURVEY_RESOLVED, S.SURVEY_COMMENTS, T.RESOLVED_GIVEN),
        Transition(S.SURVEY_COMMENTS, S.SURVEY_COMPLETE, T.COMMENTS_GIVEN),
        Transition(S.SURVEY_COMPLETE, S.CONVERSATION_END, T.SURVEY_FINISHED),

        # --- Terminal ---
        Transition(S.CONVERSATION_END, S.INITIAL, T.RESTART),
    ]

    # --- Topic sub-flows ---
    for problems, close in TOPIC_STATES.values():
        transitions.extend([
            Transition(S.INITIAL, problems, T.MENU_TOPIC),
            Transition(problems, close, T.PROBLEM_SELECTED),
            Transition(close, S.OTHER_TOPIC, T.MORE_HELP),
            Transition(close, S.INITIAL, T.BACK_TO_MENU),
        ])

    # --- Goodbye hands over to the survey; SURVEY_FINISHED covers a disabled survey ---
    for state in GOODBYE_STATES:
        transitions.append(Transition(state, S.SURVEY_INTRO, T.GOODBYE))
        transitions.append(Transition(state, S.CONVERSATION_END, T.SURVEY_FINISHED))

    # --- "skip" from anywhere in the survey ---
    for state in SURVEY_STATES:
        transitions.append(Transition(state, S.CONVERSATION_END, T.SKIP))

    # --- Re-prompt in place ---
    for state in ConversationState:
        transitions.append(Transition(state, state, T.INVALID_INPUT))

    return transitions


TRANSITIONS: list[Transition] = _build_transitions()

_TRANSITION_MAP: dict[tuple[ConversationState, TransitionTrigger], list[Transition]] = {}
for _t in TRANSITIONS:
    _TRANSITION_MAP.setdefault((_t.from_state, _t.trigger), []).append(_t)


def resolve_transition(
    state: ConversationState,
    trigger: TransitionTrigger,
    to_state: Optional[ConversationState] = None,
) -> ConversationState:
    """
    Look up the next state for a trigger fired in ``state``.

    ``to_state`` disambiguates triggers with several targets (MENU_TOPIC
    fans out to one problems state per topic).

    Raises:
        InvalidTransitionError: If the edge is not declared.
    """
    for t in _TRANSITION_MAP.get((state, trigger), []):
        if to_state is None or t.to_state == to_state:
            return t.to_state

    valid = sorted({t.trigger.value for t in TRANSITIONS if t.from_state == state})
    raise InvalidTransitionError(
        f"No valid transition from '{state.value}' "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


class ConversationStateMachine:
    """
    Tracks the current state of one session and its visit history.

    Every transition must be declared in ``TRANSITIONS``; an undeclared
    one is rejected with the list of triggers that would have been valid.
    """

    def __init__(self) -> None:
        self._current_state = ConversationState.INITIAL
        self._history: list[StateEntry] = [
            StateEntry(state=ConversationState.INITIAL, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> ConversationState:
        return self._current_state

    def transition(
        self,
        trigger: TransitionTrigger,
        to_state: Optional[ConversationState] = None,
    ) -> ConversationState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.
            to_state: Expected target when the trigger has several.

        Returns:
            The new conversation state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        old_state = self._current_state
        self._current_state = resolve_transition(old_state, trigger, to_state)
        self._history.append(StateEntry(
            state=self._current_state,
            entered_at=datetime.now(timezone.utc),
            trigger=trigger,
        ))
        logger.debug(
            "State transition: %s -> %s (trigger: %s)",
            old_state.value, self._current_state.value, trigger.value,
        )
        return self._current_state

    def reset(self) -> None:
        """Start a fresh history at the initial state."""
        self._current_state = ConversationState.INITIAL
        self._history = [
            StateEntry(state=ConversationState.INITIAL, entered_at=datetime.now(timezone.utc))
        ]

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        seen: list[TransitionTrigger] = []
        for t in TRANSITIONS:
            if t.from_state == self._current_state and t.trigger not in seen:
                seen.append(t.trigger)
        return seen

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """Check if the conversation has reached a terminal state."""
        return self._current_state == ConversationState.CONVERSATION_END
