"""Constants"""

from datetime import timedelta
from enum import Enum
from typing import Final


# ==================== Vocabulary ====================
GOODNIGHT_WORDS: Final[frozenset[str]] = frozenset(
    {"gn", "goodnight", "good night", "gngn", "night", "good nite"}
)
GOODMORNING_WORDS: Final[frozenset[str]] = frozenset(
    {"gm", "goodmorning", "good morning", "morning"}
)

MIN_RATING: Final[int] = 1
MAX_RATING: Final[int] = 10


# ==================== Timing ====================
PENDING_GRACE_PERIOD: Final[timedelta] = timedelta(hours=1)
MAX_PROACTIVE_BEDTIME: Final[timedelta] = timedelta(hours=12)
MAX_REPAIRED_SLEEP_MINUTES: Final[int] = 16 * 60

# Multiple open sessions: prefer the one implying a sleep closest to this
TARGET_SLEEP_HOURS: Final[float] = 8.0
MIN_PLAUSIBLE_SLEEP_HOURS: Final[float] = 4.0
MAX_PLAUSIBLE_SLEEP_HOURS: Final[float] = 12.0


# ==================== Reactions ====================
# Telegram only accepts a fixed set of reaction emoji
REACTION_GOODNIGHT: Final[str] = "😴"
REACTION_GOODMORNING: Final[str] = "⚡"
REACTION_RATING: Final[str] = "👌"
REACTION_NO_TARGET: Final[str] = "🤔"
REACTION_RESET: Final[str] = "🫡"
REACTION_UNDO: Final[str] = "👍"
REACTION_EXPORT: Final[str] = "✍"


# ==================== Check-ins ====================
class CheckinKind(str, Enum):
    """Check-in kind"""
    GN = "GN"
    GM = "GM"
    RATING = "RATING"


class RatingSlot(str, Enum):
    """Which rating a bare ``!n`` filled"""
    EVENING = "EVENING"
    MORNING = "MORNING"


# ==================== Sessions ====================
class SessionStatus(str, Enum):
    """Session status"""
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RatingStatus(str, Enum):
    """Evening rating status"""
    MISSING = "MISSING"
    RECORDED = "RECORDED"
    OMITTED = "OMITTED"


class SessionState(str, Enum):
    """Derived session state, stored alongside the raw columns"""
    OPEN = "OPEN"
    CLOSED_AWAITING_EVENING = "CLOSED_AWAITING_EVENING"
    CLOSED_AWAITING_MORNING = "CLOSED_AWAITING_MORNING"
    CLOSED_AWAITING_BOTH = "CLOSED_AWAITING_BOTH"
    RATED = "RATED"

    @classmethod
    def derive(
        cls,
        status: SessionStatus,
        evening_rating_status: RatingStatus,
        morning_rating: int | None,
    ) -> "SessionState":
        """
        Compute the state tag from the raw session columns

        Mirrors the ``derive_session_state()`` trigger in
        ``core/database.py``, which sets the stored ``state`` column. Keep
        the two in step.
        """
        if status == SessionStatus.OPEN:
            return cls.OPEN
        awaiting_evening = evening_rating_status == RatingStatus.MISSING
        awaiting_morning = morning_rating is None
        if awaiting_evening and awaiting_morning:
            return cls.CLOSED_AWAITING_BOTH
        if awaiting_evening:
            return cls.CLOSED_AWAITING_EVENING
        if awaiting_morning:
            return cls.CLOSED_AWAITING_MORNING
        return cls.RATED


# ==================== Undo ====================
class UndoType(str, Enum):
    """Which inverse procedure an undo entry replays"""
    GN_DELETE = "GN_DELETE"
    GM_REOPEN = "GM_REOPEN"
    EVENING_RATING_CLEAR = "EVENING_RATING_CLEAR"
    MORNING_RATING_CLEAR = "MORNING_RATING_CLEAR"
    UNKNOWN = "UNKNOWN"
