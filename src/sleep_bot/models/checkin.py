"""Check-in data model"""

from dataclasses import dataclass
from datetime import datetime

from sleep_bot.config.constants import CheckinKind, RatingSlot


@dataclass
class Checkin:
    """A recognised check-in message"""

    id: int
    user_id: int
    username: str
    kind: CheckinKind
    timestamp: datetime
    raw_text: str
    # Rating check-ins only: the session and slot the rating went to
    session_id: int | None = None
    rating_slot: RatingSlot | None = None
