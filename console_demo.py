"""
Console chat demo: talk to the helpdesk bot in a terminal.

Renders bot messages with their option buttons (numbered, so "2" picks
the second one), honours the reveal delays between staged messages, and
can auto-play pre-scripted scenarios for walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --locale fa
    python console_demo.py --scenario urgent --no-delay
    python console_demo.py --scenario topic --save-transcript chat.json
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from helpdesk.config import SUPPORTED_LOCALES, settings
from helpdesk.conversation.session import ChatSession, Delivery
from helpdesk.schemas.message_schema import InputKind
from helpdesk.tools.script_store import ScriptLoadError

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

INPUT_HINTS = {
    InputKind.DATE: "pick a date, e.g. January 5, 2000",
    InputKind.RATING: "rate from 1 to 5",
}


class ConsoleSession:
    """Drives a ChatSession from the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "urgent": [
            "hello",
            "Urgent Assistance",
            "jane.doe@example.com",
            "January 5, 2000",
            "Registration",
            "Add a course",
            "Yes",
            "I need to add COMP 2150 but the section shows as full.",
            "Yes, send my email",
            "No",
            "5",
            "Yes",
            "Quick and clear, thanks.",
        ],
        "topic": [
            "hello",
            "Fees & Financial Aid",
            "Payment issues",
            "Contact Financial Aid",
            "4",
            "Partially",
            "The contact card was useful.",
            "Start a new conversation",
        ],
        "skip": [
            "Course Instructor",
            "1",
            "Yes, close conversation",
            "skip",
        ],
    }

    def __init__(
        self,
        locale: Optional[str] = None,
        realtime: bool = True,
    ) -> None:
        self.chat = ChatSession(locale=locale)
        self.realtime = realtime
        self.max_input_length = settings.console.max_input_length

    def bot_say(self, delivery: Delivery) -> None:
        if self.realtime and delivery.delay > 0:
            time.sleep(delivery.delay)
        message = delivery.message
        print(f"{GREEN}{BOLD}[{settings.bot_name}]{RESET} {GREEN}{message.text}{RESET}")
        for i, option in enumerate(message.options or [], start=1):
            print(f"    {YELLOW}{i}. {option}{RESET}")
        hint = INPUT_HINTS.get(message.input_kind) if message.input_kind else None
        if hint:
            print(f"{DIM}    ({hint}){RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def show(self, deliveries: list[Delivery]) -> None:
        for delivery in deliveries:
            self.bot_say(delivery)
        self.system_log(f"State: {self.chat.state.value}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  UNIVERSITY HELPDESK - {title}{RESET}")
        print(f"{BOLD}  Locale: {self.chat.locale}  Session: {self.chat.session_id}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _summary(self, heading: str) -> None:
        trace = self.chat.state_machine.get_state_trace()
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {heading}{RESET}")
        print(f"{DIM}  State trace: {' -> '.join(trace)}{RESET}")
        print(f"{DIM}  Collected: {self.chat.record.to_dict()}{RESET}")
        if self.chat.sent_emails:
            print(f"{DIM}  Emails sent: {', '.join(self.chat.sent_emails)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        self.show(self.chat.start())

        for step in steps:
            print(f"\n{BLUE}[Student] {RESET}{step}")
            self.show(self.chat.submit(step))

        self._summary(f"Scenario '{scenario}' complete.")

    def run(self) -> None:
        self._banner("Console Chat")
        print(f"{DIM}  Type 'quit' to exit{RESET}\n")
        self.show(self.chat.start())

        while True:
            try:
                user_input = input(f"\n{BLUE}[Student] {RESET}").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                break

            if len(user_input) > self.max_input_length:
                print(f"{RED}  Message too long ({len(user_input)} characters, "
                      f"max {self.max_input_length}).{RESET}")
                continue

            self.show(self.chat.submit(self._resolve_number(user_input)))

        print(f"\n{DIM}Session ended.{RESET}")
        self._summary("Conversation closed.")

    def _resolve_number(self, text: str) -> str:
        # Ratings are typed as numbers, so only map when buttons are showing
        options = self.chat.current_options
        if not options or not text.isdecimal() or len(text) > len(str(len(options))):
            return text
        position = int(text)
        if 1 <= position <= len(options):
            return options[position - 1]
        return text

    def save_transcript(self, path: Path) -> None:
        transcript = self.chat.export()
        path.write_text(transcript.model_dump_json(indent=2), encoding="utf-8")
        self.system_log(f"Transcript saved to {path}")


def main() -> None:
    parser = argparse.ArgumentParser(description="University helpdesk console chat")
    parser.add_argument(
        "--locale",
        choices=list(SUPPORTED_LOCALES),
        default=None,
        help="Conversation language (defaults to CHATBOT_LOCALE)",
    )
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Reveal staged bot messages immediately",
    )
    parser.add_argument(
        "--save-transcript",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write the conversation transcript as JSON when done",
    )
    args = parser.parse_args()

    realtime = settings.console.realtime_delays and not args.no_delay
    try:
        session = ConsoleSession(locale=args.locale, realtime=realtime)
    except ScriptLoadError as e:
        print(f"{RED}Could not load conversation script: {e}{RESET}", file=sys.stderr)
        sys.exit(1)

    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()

    if args.save_transcript:
        session.save_transcript(args.save_transcript)


if __name__ == "__main__":
    main()
