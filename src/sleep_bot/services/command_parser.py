"""Check-in message parser

Accepted shapes::

    !5                          rating only
    gn (11pm) !8                command, time override, rating
    good morning (9:00 am)
    gn (9pm) "pset grinding" !5 note anywhere in the message
"""

import re
from dataclasses import dataclass
from enum import Enum

from sleep_bot.config.constants import GOODMORNING_WORDS, GOODNIGHT_WORDS
from sleep_bot.utils.validator import clean_input

_SMART_QUOTES = str.maketrans({"“": '"', "”": '"'})

_RATING_ONLY_RE = re.compile(r"^!\s*([1-9]|10)\s*$")
_NOTE_RE = re.compile(r'"([^"]*)"')
_TRAILING_RATING_RE = re.compile(r"!\s*([1-9]|10)\s*$")
_TRAILING_TIME_RE = re.compile(r"\(\s*([^)]+?)\s*\)\s*$")


class MessageKind(str, Enum):
    """What a message asks for"""
    RATING_ONLY = "RATING_ONLY"
    GN = "GN"
    GM = "GM"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ParsedMessage:
    """Structured check-in intent"""

    kind: MessageKind
    rating: int | None = None
    time_token: str | None = None
    note: str | None = None


UNKNOWN_MESSAGE = ParsedMessage(kind=MessageKind.UNKNOWN)


def parse_message(raw: str) -> ParsedMessage:
    """
    Parse a check-in message

    Args:
        raw: Message text as posted

    Returns:
        Parsed intent; ``MessageKind.UNKNOWN`` when the text is not a check-in
    """
    text = raw.strip().translate(_SMART_QUOTES)

    rating_only = _RATING_ONLY_RE.match(text)
    if rating_only:
        return ParsedMessage(kind=MessageKind.RATING_ONLY, rating=int(rating_only.group(1)))

    note = None
    note_match = _NOTE_RE.search(text)
    if note_match:
        note = note_match.group(1).strip()
        text = (text[: note_match.start()] + text[note_match.end():]).strip()

    rating = None
    rating_match = _TRAILING_RATING_RE.search(text)
    if rating_match:
        rating = int(rating_match.group(1))
        text = text[: rating_match.start()].strip()

    time_token = None
    time_match = _TRAILING_TIME_RE.search(text)
    if time_match:
        time_token = time_match.group(1).strip()
        text = text[: time_match.start()].strip()

    command = clean_input(text).lower()
    if command in GOODNIGHT_WORDS:
        return ParsedMessage(kind=MessageKind.GN, rating=rating, time_token=time_token, note=note)
    if command in GOODMORNING_WORDS:
        return ParsedMessage(kind=MessageKind.GM, rating=rating, time_token=time_token, note=note)
    return UNKNOWN_MESSAGE
