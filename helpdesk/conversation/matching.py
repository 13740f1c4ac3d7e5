"""
Option matching for button labels and typed replies.

Resolves a raw utterance to a position in an option list. Tiers are
tried in a fixed order and the first tier with exactly one hit wins:

1. EXACT              : normalized text equals a localized label
2. SUBSTRING          : utterance inside a label, or a label inside it
3. CANONICAL_EXACT    : same as 1 against the canonical (English) labels
4. CANONICAL_SUBSTRING: same as 2 against the canonical labels
5. POSITION           : a 1-based number ("3" picks the third option)

Several hits in one tier count as no hit for that tier.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from helpdesk.utils import normalize_text

logger = logging.getLogger(__name__)


class MatchTier(str, Enum):
    EXACT = "exact"
    SUBSTRING = "substring"
    CANONICAL_EXACT = "canonical_exact"
    CANONICAL_SUBSTRING = "canonical_substring"
    POSITION = "position"


@dataclass(frozen=True)
class OptionMatch:
    """A resolved option: its position and both of its labels."""
    index: int
    label: str
    canonical: str
    tier: MatchTier


def _unique(hits: list[int]) -> Optional[int]:
    return hits[0] if len(hits) == 1 else None


def _exact_index(needle: str, labels: Sequence[str]) -> Optional[int]:
    return _unique([i for i, label in enumerate(labels) if normalize_text(label) == needle])


def _substring_index(needle: str, labels: Sequence[str]) -> Optional[int]:
    hits = []
    for i, label in enumerate(labels):
        normalized = normalize_text(label)
        if normalized and (needle in normalized or normalized in needle):
            hits.append(i)
    return _unique(hits)


def _position_index(needle: str, count: int) -> Optional[int]:
    # int() rejects non-decimal digits such as "²"
    if not needle.isdecimal() or len(needle) > len(str(count)):
        return None
    position = int(needle)
    if 1 <= position <= count:
        return position - 1
    return None


def match_option(
    text: str,
    options: Sequence[str],
    canonical: Optional[Sequence[str]] = None,
) -> Optional[OptionMatch]:
    """
    Match an utterance against an option list.

    Args:
        text: Raw user input.
        options: Labels as shown to the user.
        canonical: Canonical labels at the same positions. Defaults to
            ``options`` when the session already runs the canonical locale.

    Returns:
        The match, or None when the input is empty, unmatched, or ambiguous.
    """
    needle = normalize_text(text)
    if not needle or not options:
        return None

    if canonical is None or len(canonical) != len(options):
        canonical = options

    tiers = [
        (MatchTier.EXACT, lambda: _exact_index(needle, options)),
        (MatchTier.SUBSTRING, lambda: _substring_index(needle, options)),
        (MatchTier.CANONICAL_EXACT, lambda: _exact_index(needle, canonical)),
        (MatchTier.CANONICAL_SUBSTRING, lambda: _substring_index(needle, canonical)),
        (MatchTier.POSITION, lambda: _position_index(needle, len(options))),
    ]
    for tier, find in tiers:
        index = find()
        if index is not None:
            logger.debug("Matched %r to option %d via %s", text, index, tier.value)
            return OptionMatch(
                index=index,
                label=options[index],
                canonical=canonical[index],
                tier=tier,
            )

    logger.debug("No unique option match for %r", text)
    return None
