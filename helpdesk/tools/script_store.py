"""
Conversation script store.

Loads the per-locale JSON scripts shipped in ``helpdesk/scripts`` (or a
directory given by ``CHATBOT_SCRIPT_DIR``), validates them against the
script schema, and pairs the requested locale with the canonical English
script so option positions can be resolved in either language.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from helpdesk.config import settings
from helpdesk.schemas.script_schema import ScriptDocument, TopicScript

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_DIR = Path(__file__).resolve().parent.parent / "scripts"

TOPIC_KEYS = (
    "course_registration",
    "fees_financial_aid",
    "assignments_exams",
    "course_instructor",
)


class ScriptLoadError(Exception):
    """Raised when a script file is missing, malformed, or inconsistent."""


def _script_dir() -> Path:
    if settings.script.script_dir:
        return Path(settings.script.script_dir)
    return DEFAULT_SCRIPT_DIR


def script_path(locale: str, directory: Optional[Path] = None) -> Path:
    """Return the file path for a locale's script."""
    return (directory or _script_dir()) / f"flow-{locale}.json"


def load_script_document(path: Path) -> ScriptDocument:
    """Read and validate one script file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScriptLoadError(f"Script file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ScriptLoadError(f"Script file {path.name} is not valid JSON: {e}") from e

    try:
        document = ScriptDocument.model_validate(data)
    except ValidationError as e:
        raise ScriptLoadError(
            f"Script file {path.name} does not match the script schema:\n{e}"
        ) from e

    logger.debug("Loaded script: %s", path.name)
    return document


def _option_lists(document: ScriptDocument) -> dict[str, tuple]:
    """Every positional option list the engine resolves by index."""
    urgent = document.urgent_assistance
    lists: dict[str, tuple] = {
        "initial.options": document.initial.options,
        "urgentAssistance.topics": urgent.topics,
        "urgentAssistance.registrationOptions.options": urgent.registration_options.options,
        "urgentAssistance.unavailable.options": urgent.unavailable.options,
        "urgentAssistance.emailComposition.confirmationOptions":
            urgent.email_composition.confirmation_options,
        "urgentAssistance.emailComposition.followUpOptions":
            urgent.email_composition.follow_up_options,
        "survey.questions": document.survey.questions,
    }
    for key in TOPIC_KEYS:
        topic: TopicScript = getattr(document.other_topics, key)
        lists[f"otherTopics.{key}.problems"] = topic.problems
        lists[f"otherTopics.{key}.closeOptions"] = topic.close_options
        lists[f"otherTopics.{key}.options"] = topic.options
    return lists


def check_interchangeable(document: ScriptDocument, canonical: ScriptDocument) -> None:
    """Ensure a localized script lines up position-for-position with the canonical one.

    Raises:
        ScriptLoadError: If any option list differs in length or a
            contact key is unknown to the canonical script.
    """
    localized_lists = _option_lists(document)
    mismatched = [
        name
        for name, canonical_list in _option_lists(canonical).items()
        if len(localized_lists[name]) != len(canonical_list)
    ]
    if mismatched:
        raise ScriptLoadError(
            "Localized script is not interchangeable with the canonical script; "
            f"option list lengths differ for: {', '.join(mismatched)}"
        )

    unknown_contacts = set(document.contacts) - set(canonical.contacts)
    if unknown_contacts:
        raise ScriptLoadError(
            f"Contact keys must use canonical labels, unknown: {sorted(unknown_contacts)}"
        )


class ScriptStore:
    """
    One locale's script plus the canonical script it mirrors.

    ``flow`` holds what the student sees; ``canonical`` holds the English
    labels at the same positions, which is what problem-description keys,
    contact keys, and branch decisions are written against.
    """

    def __init__(self, flow: ScriptDocument, canonical: ScriptDocument, locale: str) -> None:
        self.flow = flow
        self.canonical = canonical
        self.locale = locale

    def topic(self, key: str) -> TopicScript:
        return getattr(self.flow.other_topics, key)

    def canonical_topic(self, key: str) -> TopicScript:
        return getattr(self.canonical.other_topics, key)

    def __repr__(self) -> str:
        return f"ScriptStore(locale={self.locale!r})"


@lru_cache(maxsize=None)
def get_script_store(locale: Optional[str] = None) -> ScriptStore:
    """Load (once per locale) and return the script store.

    Raises:
        ScriptLoadError: If a script cannot be loaded or the locales
            are not structurally interchangeable.
    """
    locale = locale or settings.script.locale
    canonical_locale = settings.script.canonical_locale

    canonical = load_script_document(script_path(canonical_locale))
    if locale == canonical_locale:
        flow = canonical
    else:
        flow = load_script_document(script_path(locale))
        check_interchangeable(flow, canonical)

    logger.info("Script store ready for locale '%s'", locale)
    return ScriptStore(flow=flow, canonical=canonical, locale=locale)
