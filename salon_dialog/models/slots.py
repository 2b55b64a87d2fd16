"""
Slot Models
===========
Candidate and ranked appointment slots, booking history records and
popular-time buckets.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, Dict, Any

SLOT_ID_PREFIX = "slot"
SLOT_ID_SEPARATOR = "|"


@dataclass(frozen=True)
class CandidateSlot:
    """
    A free (date, time, staff, service) tuple from the availability source.

    Example:
        CandidateSlot(date(2026, 10, 23), time(15, 0), staff_id="anna", service_id="haircut")
    """
    date: date
    time: time
    staff_id: str
    service_id: str

    @property
    def slot_id(self) -> str:
        """Button id for this slot: slot|YYYY-MM-DD|HH:MM|staffId"""
        return SLOT_ID_SEPARATOR.join(
            [SLOT_ID_PREFIX, self.date.isoformat(), self.time.strftime("%H:%M"), self.staff_id]
        )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "time": self.time.strftime("%H:%M"),
            "staff_id": self.staff_id,
            "service_id": self.service_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateSlot":
        return cls(
            date=date.fromisoformat(data["date"]),
            time=parse_hhmm(data["time"]),
            staff_id=str(data["staff_id"]),
            service_id=str(data.get("service_id", "")),
        )


@dataclass(frozen=True)
class RankedSlot:
    """A candidate slot with its proximity score and 1-indexed rank"""
    slot: CandidateSlot
    score: int
    rank: int
    is_best_match: bool
    time_distance_minutes: int
    date_distance_days: int
    staff_match: bool = False


@dataclass(frozen=True)
class BookingRecord:
    """Historical booking used for popular-times aggregation"""
    booking_id: str
    starts_at: datetime
    service_id: Optional[str] = None
    staff_id: Optional[str] = None
    status: str = "confirmed"  # confirmed, completed, cancelled

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass
class PopularTimeBucket:
    """
    Aggregated booking popularity for one (day-of-week, hour) cell.

    day_of_week follows the 0 = Sunday ... 6 = Saturday convention.
    """
    day_of_week: int
    hour: int
    count: int = 0
    score: float = 0.0
    is_significant: bool = False
    confidence: float = 0.0
    is_default: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def matches(self, slot: CandidateSlot) -> bool:
        return day_of_week(slot.date) == self.day_of_week and slot.time.hour == self.hour


def day_of_week(value: date) -> int:
    """Sunday-based weekday index (0 = Sunday ... 6 = Saturday)"""
    return (value.weekday() + 1) % 7


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' (or 'HH:MM:SS') into a time"""
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time: {value!r}")
    return time(int(parts[0]), int(parts[1]))


def parse_slot_id(slot_id: str) -> Optional[Dict[str, str]]:
    """
    Split a slot button id into its parts.

    Returns None for anything that is not a well-formed slot id.
    """
    parts = slot_id.split(SLOT_ID_SEPARATOR, 3)
    if len(parts) != 4 or parts[0] != SLOT_ID_PREFIX or not parts[3]:
        return None
    try:
        date.fromisoformat(parts[1])
        parse_hhmm(parts[2])
    except ValueError:
        return None
    return {"date": parts[1], "time": parts[2], "staff_id": parts[3]}
