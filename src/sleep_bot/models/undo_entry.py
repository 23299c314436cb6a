"""Undo entry data model

Each reset pushes one ``UndoEntry``. The ``snapshot`` is a tagged union:
its class is fixed by ``undo_type`` and carries exactly the fields the
matching inverse operation needs.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Union

from sleep_bot.config.constants import CheckinKind, RatingStatus, UndoType
from sleep_bot.models.base import datetime_from_json, datetime_to_json


@dataclass(frozen=True)
class GoodnightSnapshot:
    """Everything needed to recreate a session deleted by resetting its gn"""

    username: str
    bed_time: datetime
    note: str | None
    evening_rating: int | None
    evening_rating_status: RatingStatus

    def to_json(self) -> dict:
        data = asdict(self)
        data["bed_time"] = datetime_to_json(self.bed_time)
        data["evening_rating_status"] = self.evening_rating_status.value
        return data

    @classmethod
    def from_json(cls, data: dict) -> "GoodnightSnapshot":
        return cls(
            username=data["username"],
            bed_time=datetime_from_json(data["bed_time"]),
            note=data.get("note"),
            evening_rating=data.get("evening_rating"),
            evening_rating_status=RatingStatus(data["evening_rating_status"]),
        )


@dataclass(frozen=True)
class GoodmorningSnapshot:
    """Closing fields of a session reopened by resetting its gm"""

    wake_time: datetime
    sleep_minutes: int | None
    morning_rating: int | None
    morning_note: str | None

    def to_json(self) -> dict:
        data = asdict(self)
        data["wake_time"] = datetime_to_json(self.wake_time)
        return data

    @classmethod
    def from_json(cls, data: dict) -> "GoodmorningSnapshot":
        return cls(
            wake_time=datetime_from_json(data["wake_time"]),
            sleep_minutes=data.get("sleep_minutes"),
            morning_rating=data.get("morning_rating"),
            morning_note=data.get("morning_note"),
        )


@dataclass(frozen=True)
class EveningRatingSnapshot:
    """A cleared evening rating"""

    rating: int
    rating_status: RatingStatus

    def to_json(self) -> dict:
        return {"rating": self.rating, "rating_status": self.rating_status.value}

    @classmethod
    def from_json(cls, data: dict) -> "EveningRatingSnapshot":
        return cls(rating=data["rating"], rating_status=RatingStatus(data["rating_status"]))


@dataclass(frozen=True)
class MorningRatingSnapshot:
    """A cleared morning rating"""

    rating: int

    def to_json(self) -> dict:
        return {"rating": self.rating}

    @classmethod
    def from_json(cls, data: dict) -> "MorningRatingSnapshot":
        return cls(rating=data["rating"])


UndoSnapshot = Union[
    GoodnightSnapshot,
    GoodmorningSnapshot,
    EveningRatingSnapshot,
    MorningRatingSnapshot,
    None,
]

SNAPSHOT_TYPES: dict[UndoType, type] = {
    UndoType.GN_DELETE: GoodnightSnapshot,
    UndoType.GM_REOPEN: GoodmorningSnapshot,
    UndoType.EVENING_RATING_CLEAR: EveningRatingSnapshot,
    UndoType.MORNING_RATING_CLEAR: MorningRatingSnapshot,
}


def snapshot_to_json(snapshot: UndoSnapshot) -> dict | None:
    """Serialise a snapshot for storage"""
    if snapshot is None:
        return None
    return snapshot.to_json()


def snapshot_from_json(undo_type: UndoType, data: dict | None) -> UndoSnapshot:
    """Rebuild the snapshot variant selected by ``undo_type``"""
    snapshot_cls = SNAPSHOT_TYPES.get(undo_type)
    if snapshot_cls is None or data is None:
        return None
    return snapshot_cls.from_json(data)


@dataclass
class UndoEntry:
    """One reversible reset"""

    id: int
    user_id: int
    checkin_id: int
    checkin_kind: CheckinKind
    checkin_timestamp: datetime
    checkin_raw_text: str
    checkin_username: str
    session_id: int | None
    undo_type: UndoType
    snapshot: UndoSnapshot
    created_at: datetime
