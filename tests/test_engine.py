"""Tests for the dialog engine: routing, re-prompts, survey and restart."""

import pytest
from conftest import SURVEY_FROM_TOPIC, URGENT_TO_CONFIRMATION, play

from helpdesk.config import TimingConfig
from helpdesk.conversation.engine import DialogContext, DialogEngine
from helpdesk.conversation.state_machine import (
    TOPIC_STATES,
    ConversationState,
    TransitionTrigger,
)
from helpdesk.schemas.message_schema import InputKind
from helpdesk.schemas.user_schema import SurveyResponse, UserRecord
from helpdesk.tools.script_store import ScriptStore

S = ConversationState


class TestOpening:
    def test_fresh_opening_hides_menu_buttons(self, engine, store):
        greeting, question = engine.opening()
        assert greeting.text == store.flow.initial.greeting
        assert question.text == store.flow.initial.question
        assert question.options is None

    def test_opening_with_options(self, engine, store):
        _, question = engine.opening(show_options=True)
        assert question.options == store.flow.initial.options


class TestMenu:
    def test_first_unmatched_message_shows_menu(self, engine, store):
        result = engine.handle(DialogContext(), "hello")
        assert result.state == S.INITIAL
        assert result.context.menu_shown
        assert len(result.replies) == 1
        assert result.replies[0].options == store.flow.initial.options

    def test_second_unmatched_message_gets_invalid_input(self, engine, store):
        result = play(engine, ["hello", "still nothing"])
        assert result.state == S.INITIAL
        assert [r.text for r in result.replies] == [
            store.flow.responses.invalid_input,
            store.flow.initial.question,
        ]
        assert result.replies[1].options == store.flow.initial.options

    def test_urgent_assistance(self, engine, store):
        result = engine.handle(DialogContext(), "Urgent Assistance")
        assert result.state == S.URGENT_AUTH_EMAIL
        assert result.replies[0].text == store.flow.urgent_assistance.auth_questions[0].question

    def test_menu_by_position(self, engine):
        result = engine.handle(DialogContext(), "5")
        assert result.state == S.URGENT_AUTH_EMAIL

    @pytest.mark.parametrize("label,key", [
        ("Course Registration", "course_registration"),
        ("Fees & Financial Aid", "fees_financial_aid"),
        ("Assignments & Exams", "assignments_exams"),
        ("Course Instructor", "course_instructor"),
    ])
    def test_topic_routes_to_problems(self, engine, store, label, key):
        result = engine.handle(DialogContext(), label)
        assert result.state == TOPIC_STATES[key][0]
        assert result.context.topic == key
        assert result.replies[0].options == store.topic(key).problems


class TestUrgentAuthentication:
    def test_invalid_email_stays(self, engine, store):
        result = play(engine, ["Urgent Assistance", "not-an-email"])
        assert result.state == S.URGENT_AUTH_EMAIL
        assert result.replies[0].text == store.flow.responses.invalid_email
        assert result.context.record.email is None

    def test_valid_email_asks_for_dob_with_calendar(self, engine):
        result = play(engine, ["Urgent Assistance", "jane.doe@example.com"])
        assert result.state == S.URGENT_AUTH_DOB
        assert result.context.record.email == "jane.doe@example.com"
        assert result.replies[0].input_kind == InputKind.DATE
        assert result.replies[0].show_calendar

    def test_dob_derives_name(self, engine, store):
        result = play(engine, ["Urgent Assistance", "jane.doe@example.com", "January 5, 2000"])
        assert result.state == S.URGENT_TOPIC
        assert result.context.record.name == "Jane"
        assert result.context.record.dob == "January 5, 2000"
        assert result.replies[0].options == store.flow.urgent_assistance.topics

    def test_invalid_dob_reprompts(self, engine, store):
        result = play(engine, ["Urgent Assistance", "jane.doe@example.com", "not a date"])
        assert result.state == S.URGENT_AUTH_DOB
        assert result.replies[0].text == store.flow.responses.invalid_date
        assert result.replies[0].show_calendar


class TestUrgentTopics:
    def _at_topic(self, engine):
        return play(engine, ["Urgent Assistance", "jane.doe@example.com", "January 5, 2000"]).context

    def test_registration_shows_options(self, engine, store):
        result = engine.handle(self._at_topic(engine), "Registration")
        assert result.state == S.URGENT_REGISTRATION_OPTION
        assert result.replies[0].options == store.flow.urgent_assistance.registration_options.options

    def test_other_topics_are_unavailable(self, engine):
        result = engine.handle(self._at_topic(engine), "Tuition Payment")
        assert result.state == S.URGENT_UNAVAILABLE

    def test_unmatched_topic_reprompts(self, engine, store):
        result = engine.handle(self._at_topic(engine), "parking")
        assert result.state == S.URGENT_TOPIC
        assert result.replies[0].text == store.flow.responses.invalid_input
        assert result.replies[1].options == store.flow.urgent_assistance.topics

    def test_unavailable_no_goes_to_survey(self, engine, store):
        context = engine.handle(self._at_topic(engine), "Exam Scheduling").context
        result = engine.handle(context, "No")
        assert result.state == S.SURVEY_SATISFACTION
        texts = [r.text for r in result.replies]
        assert texts[0] == store.flow.responses.goodbye
        assert texts[1] == store.flow.survey.intro

    def test_compose_greets_by_name(self, engine):
        context = engine.handle(self._at_topic(engine), "Other").context
        result = engine.handle(context, "Yes")
        assert result.state == S.URGENT_EMAIL_COMPOSITION
        assert result.replies[0].text.startswith("Hi Jane,")
        assert "{name}" not in result.replies[0].text


class TestEmailSending:
    def test_confirmation_collects_content(self, engine, store):
        result = play(engine, URGENT_TO_CONFIRMATION)
        assert result.state == S.URGENT_EMAIL_CONFIRMATION
        assert result.context.record.email_content == "Please add me to COMP 2150."
        assert result.replies[0].options == (
            store.flow.urgent_assistance.email_composition.confirmation_options
        )

    def test_confirm_sends_and_asks_followup(self, engine, store, timing):
        context = play(engine, URGENT_TO_CONFIRMATION).context
        result = engine.handle(context, "Yes, send my email")
        composition = store.flow.urgent_assistance.email_composition

        assert result.state == S.URGENT_FOLLOWUP
        assert [r.text for r in result.replies] == [
            composition.sending, composition.sent, composition.follow_up,
        ]
        assert result.replies[1].delay == timing.email_send_delay
        assert result.transitions == (
            (TransitionTrigger.EMAIL_CONFIRMED, S.URGENT_EMAIL_SENT),
            (TransitionTrigger.EMAIL_SENT, S.URGENT_FOLLOWUP),
        )

        email = result.outbound_email
        assert email.sender == "jane.doe@example.com"
        assert email.student_name == "Jane"
        assert email.body == "Please add me to COMP 2150."

    def test_cancel_says_goodbye(self, engine, store):
        context = play(engine, URGENT_TO_CONFIRMATION).context
        result = engine.handle(context, "No, cancel")
        assert result.outbound_email is None
        assert result.replies[0].text == store.flow.responses.goodbye
        assert result.state == S.SURVEY_SATISFACTION

    def test_followup_yes_returns_to_menu(self, engine, store):
        context = play(engine, URGENT_TO_CONFIRMATION + ["Yes, send my email"]).context
        result = engine.handle(context, "Yes")
        assert result.state == S.INITIAL
        assert result.context.record.is_empty()
        assert result.replies[-1].options == store.flow.initial.options

    def test_followup_no_starts_survey_without_goodbye(self, engine, store):
        context = play(engine, URGENT_TO_CONFIRMATION + ["Yes, send my email"]).context
        result = engine.handle(context, "No")
        assert result.state == S.SURVEY_SATISFACTION
        assert result.replies[0].text == store.flow.survey.intro


class TestTopicSubFlow:
    def test_problem_shows_description_then_close_question(self, engine, store, timing):
        result = play(engine, ["Course Registration", "Course is full"])
        topic = store.topic("course_registration")
        assert result.state == S.COURSE_REGISTRATION_CLOSE
        assert result.replies[0].text == topic.problem_descriptions["Course is full"]
        assert result.replies[1].text == topic.close_conversation_question
        assert result.replies[1].options == topic.close_options
        assert result.replies[1].delay == timing.close_question_delay

    def test_unmatched_problem_still_advances(self, engine, store):
        result = play(engine, ["Course Registration", "my cat ate my homework"])
        assert result.state == S.COURSE_REGISTRATION_CLOSE
        assert result.replies[0].text == store.topic("course_registration").message

    def test_close_yes_goes_to_survey(self, engine, store):
        result = play(engine, SURVEY_FROM_TOPIC)
        assert result.state == S.SURVEY_SATISFACTION
        assert [r.text for r in result.replies] == [
            store.flow.responses.goodbye,
            store.flow.survey.intro,
            store.flow.survey.questions[0].question,
        ]
        assert result.replies[-1].input_kind == InputKind.RATING

    def test_close_more_help(self, engine, store):
        result = play(engine, ["Course Registration", "Course is full", "No, I need more help"])
        topic = store.topic("course_registration")
        assert result.state == S.OTHER_TOPIC
        assert result.replies[0].text == topic.message
        assert result.replies[0].options == topic.options

    def test_close_contact_shows_card(self, engine, store, timing):
        result = play(engine, ["Fees & Financial Aid", "Payment issues", "Contact Financial Aid"])
        contact = store.flow.contacts["Contact Financial Aid"]
        card = result.replies[0].text
        assert card.startswith(store.flow.responses.contact_header)
        assert contact.name in card
        assert contact.phone in card
        assert result.replies[1].text == store.flow.responses.goodbye
        assert result.replies[1].delay == timing.contact_goodbye_delay
        assert result.state == S.SURVEY_SATISFACTION

    def test_close_back_to_menu(self, engine, store):
        result = play(engine, ["Assignments & Exams", "Grading concerns", "Back to Menu"])
        assert result.state == S.INITIAL
        assert result.context.topic is None
        assert [r.text for r in result.replies] == [
            store.flow.initial.greeting, store.flow.initial.question,
        ]
        assert result.replies[1].options == store.flow.initial.options

    @pytest.mark.parametrize("key", list(TOPIC_STATES))
    def test_back_to_menu_from_every_close_state(self, engine, store, key):
        context = DialogContext(
            state=TOPIC_STATES[key][1],
            record=UserRecord(email="jane.doe@example.com", name="Jane"),
            topic=key,
            menu_shown=True,
        )
        result = engine.handle(context, "Back to Menu")
        assert result.state == S.INITIAL
        assert result.context.record.is_empty()
        assert result.replies[0].text == store.flow.initial.greeting
        assert result.replies[1].options == store.flow.initial.options

    def test_unmatched_close_reprompts(self, engine, store):
        result = play(engine, ["Course Instructor", "1", "maybe"])
        assert result.state == S.COURSE_INSTRUCTOR_CLOSE
        assert result.replies[0].text == store.flow.responses.invalid_input


class TestOtherTopic:
    def _at_other(self, engine):
        return play(engine, ["Course Registration", "1", "No, I need more help"]).context

    def test_contact_from_other_topic(self, engine, store):
        result = engine.handle(self._at_other(engine), "Contact Advisor")
        assert store.flow.contacts["Contact Advisor"].email in result.replies[0].text
        assert result.state == S.SURVEY_SATISFACTION

    def test_back_to_menu_from_other_topic(self, engine):
        result = engine.handle(self._at_other(engine), "Back to Menu")
        assert result.state == S.INITIAL

    def test_anything_else_says_goodbye(self, engine, store):
        result = engine.handle(self._at_other(engine), "No, that's all")
        assert result.replies[0].text == store.flow.responses.goodbye
        assert result.state == S.SURVEY_SATISFACTION

    def _engine_without(self, store, timing, **missing):
        topic = store.flow.other_topics.course_registration.model_copy(update=missing)
        other_topics = store.flow.other_topics.model_copy(update={"course_registration": topic})
        flow = store.flow.model_copy(update={"other_topics": other_topics})
        return DialogEngine(ScriptStore(flow, store.canonical, "en"), timing=timing), topic

    def test_topic_without_problems_uses_generic_flow(self, store, timing):
        engine, topic = self._engine_without(store, timing, problems=())
        result = engine.handle(DialogContext(), "Course Registration")
        assert result.state == S.OTHER_TOPIC
        assert result.context.topic == "course_registration"
        assert result.replies[0].text == topic.message
        assert result.replies[0].options == topic.options

        result = engine.handle(result.context, "Contact Advisor")
        assert store.flow.contacts["Contact Advisor"].name in result.replies[0].text
        assert result.state == S.SURVEY_SATISFACTION

    def test_topic_without_problems_or_options(self, store, timing):
        engine, _ = self._engine_without(store, timing, problems=(), options=())
        result = engine.handle(DialogContext(), "Course Registration")
        assert result.state == S.OTHER_TOPIC
        assert result.replies[0].options is None

        result = engine.handle(result.context, "Contact Advisor")
        assert store.flow.contacts["Contact Advisor"].email in result.replies[0].text
        assert result.state == S.SURVEY_SATISFACTION


class TestSurvey:
    def _at_rating(self, engine):
        return play(engine, SURVEY_FROM_TOPIC).context

    def test_valid_rating(self, engine, store):
        result = engine.handle(self._at_rating(engine), "3")
        assert result.state == S.SURVEY_RESOLVED
        assert result.context.record.survey.satisfaction == 3
        assert result.replies[0].options == store.flow.survey.questions[1].options

    def test_out_of_range_rating_reprompts(self, engine, store):
        result = engine.handle(self._at_rating(engine), "7")
        assert result.state == S.SURVEY_SATISFACTION
        assert result.context.record.survey.satisfaction is None
        assert result.replies[0].text == store.flow.responses.invalid_rating
        assert result.replies[1].input_kind == InputKind.RATING

    def test_full_survey(self, engine, store, timing):
        result = play(engine, ["4", "Partially", "Very clear."], self._at_rating(engine))
        assert result.state == S.CONVERSATION_END
        assert result.context.record.survey == SurveyResponse(
            satisfaction=4, resolved="Partially", comments="Very clear.",
        )
        assert result.replies[0].text == store.flow.survey.thank_you
        assert result.replies[1].text == store.flow.conversation_end.message
        assert result.replies[1].options == (store.flow.conversation_end.restart_text,)
        assert result.replies[1].delay == timing.survey_end_delay

    def test_free_text_resolved_answer_kept(self, engine):
        result = play(engine, ["5", "sort of"], self._at_rating(engine))
        assert result.context.record.survey.resolved == "sort of"

    @pytest.mark.parametrize("text,expected", [
        ("I don't know", "I don't know"),
        ("not really", "not really"),
        ("no", "No"),
        ("PARTIALLY", "Partially"),
        ("2", "No"),
    ])
    def test_resolved_keeps_wording_unless_an_option_is_named(self, engine, text, expected):
        result = play(engine, ["5", text], self._at_rating(engine))
        assert result.state == S.SURVEY_COMMENTS
        assert result.context.record.survey.resolved == expected

    @pytest.mark.parametrize("state", [
        S.SURVEY_INTRO, S.SURVEY_SATISFACTION, S.SURVEY_RESOLVED,
        S.SURVEY_COMMENTS, S.SURVEY_COMPLETE,
    ])
    @pytest.mark.parametrize("text", ["skip", "SKIP", "  Skip "])
    def test_skip_from_any_survey_state(self, engine, store, state, text):
        result = engine.handle(DialogContext(state=state), text)
        assert result.state == S.CONVERSATION_END
        assert len(result.replies) == 1
        assert result.replies[0].text == store.flow.conversation_end.message
        assert result.replies[0].options == (store.flow.conversation_end.restart_text,)

    def test_skip_outside_survey_is_ordinary_input(self, engine):
        result = play(engine, ["Urgent Assistance", "skip"])
        assert result.state == S.URGENT_AUTH_EMAIL

    def test_disabled_survey_ends_conversation(self, store, timing):
        survey = store.flow.survey.model_copy(update={"enabled": False})
        flow = store.flow.model_copy(update={"survey": survey})
        engine = DialogEngine(ScriptStore(flow, store.canonical, "en"), timing=timing)
        result = play(engine, SURVEY_FROM_TOPIC)
        assert result.state == S.CONVERSATION_END
        assert result.replies[-1].text == flow.conversation_end.message


class TestConversationEnd:
    def _at_end(self, engine):
        return play(engine, ["skip"], play(engine, SURVEY_FROM_TOPIC).context).context

    @pytest.mark.parametrize("text", ["Start a new conversation", "restart", "RESTART"])
    def test_restart(self, engine, store, text):
        result = engine.handle(self._at_end(engine), text)
        assert result.state == S.INITIAL
        assert result.reset_transcript
        assert result.context == DialogContext()
        assert [r.text for r in result.replies] == [
            store.flow.initial.greeting, store.flow.initial.question,
        ]

    def test_restart_is_idempotent(self, engine):
        first = engine.handle(self._at_end(engine), "restart")
        second = engine.handle(self._at_end(engine), "restart")
        assert first == second

    def test_other_input_offers_restart(self, engine, store):
        result = engine.handle(self._at_end(engine), "hello?")
        assert result.state == S.CONVERSATION_END
        assert not result.reset_transcript
        assert result.replies[0].options == (store.flow.conversation_end.restart_text,)


class TestTotality:
    @pytest.mark.parametrize("state", list(ConversationState))
    @pytest.mark.parametrize("text", [
        "", "   ", "xyzzy", "1", "Yes", "skip", "🙂" * 50, "²", "³", "9" * 5000,
    ])
    def test_every_state_accepts_any_input(self, engine, state, text):
        context = DialogContext(
            state=state,
            record=UserRecord(email="jane.doe@example.com", name="Jane"),
            topic="course_registration",
            menu_shown=True,
        )
        result = engine.handle(context, text)
        assert result.state in ConversationState
        assert len(result.replies) >= 1


class TestPersian:
    def test_menu_routes_by_position_in_persian(self, fa_engine):
        result = fa_engine.handle(DialogContext(), "کمک فوری")
        assert result.state == S.URGENT_AUTH_EMAIL

    def test_english_label_works_in_persian_session(self, fa_engine):
        result = fa_engine.handle(DialogContext(), "Urgent Assistance")
        assert result.state == S.URGENT_AUTH_EMAIL

    def test_persian_registration_topic(self, fa_engine, fa_store):
        result = play(fa_engine, ["کمک فوری", "ali.rezaei@uni.example", "January 5, 2000", "ثبت‌نام"])
        assert result.state == S.URGENT_REGISTRATION_OPTION
        assert result.context.record.name == "Ali"

    def test_persian_problem_description_by_canonical_key(self, fa_engine, fa_store):
        result = play(fa_engine, ["ثبت‌نام دروس", "ظرفیت درس تکمیل است"])
        topic = fa_store.topic("course_registration")
        assert result.state == S.COURSE_REGISTRATION_CLOSE
        assert result.replies[0].text == topic.problem_descriptions["Course is full"]

    def test_persian_contact(self, fa_engine, fa_store):
        result = play(fa_engine, ["ثبت‌نام دروس", "۱", "تماس با مشاور"])
        assert fa_store.flow.contacts["Contact Advisor"].name in result.replies[0].text

    def test_persian_rating_digits(self, fa_engine):
        context = play(fa_engine, ["ثبت‌نام دروس", "۱", "بله، گفتگو را ببند"]).context
        result = fa_engine.handle(context, "۳")
        assert result.context.record.survey.satisfaction == 3

    def test_persian_restart_label(self, fa_engine, fa_store):
        context = DialogContext(state=S.CONVERSATION_END)
        result = fa_engine.handle(context, fa_store.flow.conversation_end.restart_text)
        assert result.state == S.INITIAL


class TestTiming:
    def test_zero_delays(self, store):
        timing = TimingConfig(
            email_send_delay=0, survey_intro_delay=0, survey_question_delay=0,
            close_question_delay=0, contact_goodbye_delay=0, survey_end_delay=0,
        )
        engine = DialogEngine(store, timing=timing)
        result = play(engine, SURVEY_FROM_TOPIC)
        assert all(r.delay == 0 for r in result.replies)
