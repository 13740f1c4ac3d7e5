"""Per-session user data collected by the dialog."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class SurveyResponse:
    """Answers to the end-of-conversation survey."""
    satisfaction: Optional[int] = None
    resolved: Optional[str] = None
    comments: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    """
    Fields accumulated while the student moves through the dialog.

    The engine never mutates a record in place; each accepted answer
    produces a new record via ``dataclasses.replace``. Back-to-menu and
    restart swap in a fresh ``UserRecord()``.
    """
    email: Optional[str] = None
    name: Optional[str] = None
    dob: Optional[str] = None
    email_content: Optional[str] = None
    survey: SurveyResponse = field(default_factory=SurveyResponse)

    def is_empty(self) -> bool:
        return self == UserRecord()

    def to_dict(self) -> dict[str, Any]:
        """Export collected values, dropping empty fields."""
        data = asdict(self)
        survey = {k: v for k, v in data.pop("survey").items() if v is not None}
        result = {k: v for k, v in data.items() if v is not None}
        if survey:
            result["survey"] = survey
        return result
