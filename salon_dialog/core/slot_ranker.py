"""
Alternative Slot Ranker
=======================
Orders free slots by how close they are to what the customer asked for.

Scoring (windows and points come from settings):
    time distance <= 60 min  -> 500
    time distance <= 120 min -> 300
    time distance <= 180 min -> 100
    otherwise                -> 0
    + 50 when the slot's staff is the originally preferred one

Ties are broken by date, then time, then staff id, so the same input always
produces the same order.
"""
from datetime import date, time
from typing import Iterable, List, Optional

from loguru import logger

from ..config import Settings, get_settings
from ..models.slots import CandidateSlot, RankedSlot


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


class AlternativeSlotRanker:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def time_score(self, distance_minutes: int) -> int:
        s = self.settings
        if distance_minutes <= s.score_window_1h_minutes:
            return s.score_within_1h
        if distance_minutes <= s.score_window_2h_minutes:
            return s.score_within_2h
        if distance_minutes <= s.score_window_3h_minutes:
            return s.score_within_3h
        return 0

    def rank(
        self,
        candidates: Iterable[CandidateSlot],
        target_time: time,
        target_date: Optional[date] = None,
        preferred_staff: Optional[str] = None,
    ) -> List[RankedSlot]:
        """
        Score, sort and number the candidates.

        Args:
            candidates: Free slots, already filtered by service
            target_time: Originally requested time
            target_date: Originally requested date (for date distance only)
            preferred_staff: Staff id the customer asked for, if any

        Returns:
            RankedSlot list, score descending, ranks 1..n. Empty input gives
            an empty list.
        """
        target_minutes = minutes_of_day(target_time)
        scored = []
        for slot in candidates:
            time_distance = abs(minutes_of_day(slot.time) - target_minutes)
            date_distance = abs((slot.date - target_date).days) if target_date else 0
            staff_match = bool(preferred_staff) and slot.staff_id.casefold() == preferred_staff.casefold()
            score = self.time_score(time_distance)
            if staff_match:
                score += self.settings.staff_match_bonus
            scored.append((slot, score, time_distance, date_distance, staff_match))

        scored.sort(key=lambda item: (-item[1], item[0].date, item[0].time, item[0].staff_id))

        ranked = [
            RankedSlot(
                slot=slot,
                score=score,
                rank=index,
                is_best_match=time_distance <= self.settings.score_window_1h_minutes,
                time_distance_minutes=time_distance,
                date_distance_days=date_distance,
                staff_match=staff_match,
            )
            for index, (slot, score, time_distance, date_distance, staff_match) in enumerate(scored, start=1)
        ]

        if ranked:
            logger.debug(
                f"🎯 Ranked {len(ranked)} slots around {target_time.strftime('%H:%M')} "
                f"(top score {ranked[0].score})"
            )
        return ranked
