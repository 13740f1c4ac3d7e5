"""Shared test fixtures and helpers."""

from typing import Iterable

import pytest

from helpdesk.config import TimingConfig
from helpdesk.conversation.engine import DialogContext, DialogEngine, TurnResult
from helpdesk.conversation.session import ChatSession
from helpdesk.conversation.state_machine import ConversationStateMachine
from helpdesk.tools import mailer
from helpdesk.tools.script_store import get_script_store


@pytest.fixture(autouse=True)
def clean_outbox():
    mailer.reset()
    yield
    mailer.reset()


@pytest.fixture
def state_machine():
    return ConversationStateMachine()


@pytest.fixture
def store():
    return get_script_store("en")


@pytest.fixture
def fa_store():
    return get_script_store("fa")


@pytest.fixture
def timing():
    return TimingConfig()


@pytest.fixture
def engine(store, timing):
    return DialogEngine(store, timing=timing, support_email="support@university.example")


@pytest.fixture
def fa_engine(fa_store, timing):
    return DialogEngine(fa_store, timing=timing, support_email="support@university.example")


@pytest.fixture
def session():
    chat = ChatSession(locale="en", session_id="CHAT-test0001")
    chat.start()
    return chat


def play(engine: DialogEngine, inputs: Iterable[str], context: DialogContext = None) -> TurnResult:
    """Feed inputs through the engine and return the last turn's result."""
    context = context or DialogContext()
    result = None
    for text in inputs:
        result = engine.handle(context, text)
        context = result.context
    return result


URGENT_TO_CONFIRMATION = [
    "Urgent Assistance",
    "jane.doe@example.com",
    "January 5, 2000",
    "Registration",
    "Add a course",
    "Yes",
    "Please add me to COMP 2150.",
]

SURVEY_FROM_TOPIC = [
    "Course Registration",
    "Course is full",
    "Yes, close conversation",
]
