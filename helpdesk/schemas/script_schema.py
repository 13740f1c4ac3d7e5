"""
Conversation script document schema.

A script is the externally authored JSON file holding every prompt,
option list and contact card for one locale. Keys are camelCase in the
file and snake_case in Python.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScriptModel(BaseModel):
    """Base for all script sections: immutable, camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class InitialSection(ScriptModel):
    greeting: str
    question: str
    options: tuple[str, ...] = Field(min_length=5, max_length=5)


class AuthQuestion(ScriptModel):
    id: str = ""
    question: str


class RegistrationOptions(ScriptModel):
    question: str
    options: tuple[str, ...] = Field(min_length=1)


class UnavailableNotice(ScriptModel):
    message: str
    options: tuple[str, ...] = Field(min_length=2)


class EmailComposition(ScriptModel):
    greeting: str
    question: str
    confirmation: str
    confirmation_options: tuple[str, ...] = Field(min_length=2)
    sending: str
    sent: str
    follow_up: str
    follow_up_options: tuple[str, ...] = ("Yes", "No")


class UrgentAssistance(ScriptModel):
    auth_questions: tuple[AuthQuestion, ...] = Field(min_length=2)
    topic_question: str
    topics: tuple[str, ...] = Field(min_length=1)
    registration_options: RegistrationOptions
    unavailable: UnavailableNotice
    email_composition: EmailComposition


class TopicScript(ScriptModel):
    """One help topic. Every field is optional; the engine falls back."""

    question: Optional[str] = None
    problems: tuple[str, ...] = ()
    problem_descriptions: dict[str, str] = Field(default_factory=dict)
    close_conversation_question: Optional[str] = None
    close_options: tuple[str, ...] = ()
    message: str = ""
    options: tuple[str, ...] = ()


class OtherTopics(ScriptModel):
    course_registration: TopicScript = Field(default_factory=TopicScript)
    fees_financial_aid: TopicScript = Field(default_factory=TopicScript)
    assignments_exams: TopicScript = Field(default_factory=TopicScript)
    course_instructor: TopicScript = Field(default_factory=TopicScript)


class Contact(ScriptModel):
    name: str
    title: str
    email: str
    phone: str


class SurveyQuestion(ScriptModel):
    id: str = ""
    question: str
    type: str = "text"
    options: tuple[str, ...] = ()


class SurveySection(ScriptModel):
    enabled: bool = True
    intro: str
    questions: tuple[SurveyQuestion, ...] = Field(min_length=3)
    thank_you: str


class Responses(ScriptModel):
    invalid_input: str
    goodbye: str
    invalid_email: str = "Please enter a valid email address."
    invalid_date: str = "Please pick a valid date of birth."
    invalid_rating: str = "Please choose a number from 1 to 5."
    contact_header: str = "Contact Information:"
    fallback_name: str = "there"


class ConversationEnd(ScriptModel):
    message: str
    restart_text: str


class ScriptDocument(ScriptModel):
    """Root of a conversation script file."""

    initial: InitialSection
    urgent_assistance: UrgentAssistance
    other_topics: OtherTopics
    contacts: dict[str, Contact] = Field(default_factory=dict)
    survey: SurveySection
    responses: Responses
    conversation_end: ConversationEnd
