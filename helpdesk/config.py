"""
Centralized configuration with environment variable overrides.

Locale selection, reveal delays, and console limits are configurable
here. Prompt text lives in the script files, never in engine logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from helpdesk.logging_context import install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES = ("en", "fa")
LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as 1/0, true/false, yes/no."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class ScriptConfig:
    """Which conversation script to load."""

    locale: str = os.getenv("CHATBOT_LOCALE", "en")
    canonical_locale: str = "en"
    script_dir: str = os.getenv("CHATBOT_SCRIPT_DIR", "")


@dataclass(frozen=True)
class TimingConfig:
    """Delays (seconds) before staged bot messages are revealed."""

    email_send_delay: float = _safe_float("EMAIL_SEND_DELAY", "1.0")
    survey_intro_delay: float = _safe_float("SURVEY_INTRO_DELAY", "1.0")
    survey_question_delay: float = _safe_float("SURVEY_QUESTION_DELAY", "0.5")
    close_question_delay: float = _safe_float("CLOSE_QUESTION_DELAY", "0.5")
    contact_goodbye_delay: float = _safe_float("CONTACT_GOODBYE_DELAY", "1.0")
    survey_end_delay: float = _safe_float("SURVEY_END_DELAY", "1.0")


@dataclass(frozen=True)
class ConsoleConfig:
    """Terminal renderer settings."""

    max_input_length: int = _safe_int("MAX_INPUT_LENGTH", "500")
    realtime_delays: bool = _safe_bool("REALTIME_DELAYS", "true")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    script: ScriptConfig = field(default_factory=ScriptConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    console: ConsoleConfig = field(default_factory=ConsoleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    bot_name: str = os.getenv("BOT_NAME", "Maryam")
    support_email: str = os.getenv("SUPPORT_EMAIL", "support@university.example")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.script.locale not in SUPPORTED_LOCALES:
        raise ValueError(
            f"CHATBOT_LOCALE must be one of {SUPPORTED_LOCALES}, got {config.script.locale!r}"
        )

    for delay_name, delay_value in [
        ("EMAIL_SEND_DELAY", config.timing.email_send_delay),
        ("SURVEY_INTRO_DELAY", config.timing.survey_intro_delay),
        ("SURVEY_QUESTION_DELAY", config.timing.survey_question_delay),
        ("CLOSE_QUESTION_DELAY", config.timing.close_question_delay),
        ("CONTACT_GOODBYE_DELAY", config.timing.contact_goodbye_delay),
        ("SURVEY_END_DELAY", config.timing.survey_end_delay),
    ]:
        if delay_value < 0:
            raise ValueError(f"{delay_name} must be >= 0, got {delay_value}")

    if config.console.max_input_length < 1:
        raise ValueError(
            f"MAX_INPUT_LENGTH must be >= 1, got {config.console.max_input_length}"
        )
    if "@" not in config.support_email:
        raise ValueError(f"SUPPORT_EMAIL must be an email address, got {config.support_email!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter()
    logger.info("Configuration loaded for locale '%s'", config.script.locale)
    return config


# Singleton instance
settings = load_config()
