"""Pending goodnight data model"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PendingGoodnight:
    """A gn recorded while another session was still open"""

    user_id: int
    checkin_id: int
    bed_time: datetime
    raw_text: str
    created_at: datetime
    note: str | None
