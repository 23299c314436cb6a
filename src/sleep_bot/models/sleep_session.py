"""Sleep session data model"""

from dataclasses import dataclass
from datetime import datetime

from sleep_bot.config.constants import RatingStatus, SessionState, SessionStatus


@dataclass
class SleepSession:
    """One tracked sleep interval, from bedtime to wake time"""

    id: int
    user_id: int
    username: str
    bed_time: datetime
    wake_time: datetime | None
    sleep_minutes: int | None
    evening_rating: int | None
    evening_rating_status: RatingStatus
    morning_rating: int | None
    status: SessionStatus
    state: SessionState
    note: str | None
    morning_note: str | None

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN

    @property
    def needs_evening_rating(self) -> bool:
        return self.evening_rating_status == RatingStatus.MISSING

    @property
    def needs_morning_rating(self) -> bool:
        return self.status == SessionStatus.CLOSED and self.morning_rating is None
