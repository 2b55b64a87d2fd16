"""Tests for the alternative slot ranker."""

from datetime import date, time

from salon_dialog.config import Settings
from salon_dialog.core.slot_ranker import AlternativeSlotRanker

from tests.conftest import make_slot

DAY = date(2026, 10, 22)
NEXT_DAY = date(2026, 10, 23)


class TestScoring:
    def test_one_hour_boundary_is_inclusive(self, ranker):
        ranked = ranker.rank([make_slot(DAY, "14:00"), make_slot(DAY, "16:05")], time(15, 0), DAY)

        assert [r.slot.time for r in ranked] == [time(14, 0), time(16, 5)]
        assert ranked[0].score == 500
        assert ranked[0].is_best_match
        assert ranked[1].score == 300
        assert not ranked[1].is_best_match

    def test_three_hour_window(self, ranker):
        ranked = ranker.rank([make_slot(DAY, "18:00"), make_slot(DAY, "18:01")], time(15, 0), DAY)
        assert [r.score for r in ranked] == [100, 0]

    def test_time_distance_ignores_date(self, ranker):
        ranked = ranker.rank([make_slot(NEXT_DAY, "15:30")], time(15, 0), DAY)
        assert ranked[0].time_distance_minutes == 30
        assert ranked[0].date_distance_days == 1
        assert ranked[0].score == 500

    def test_staff_bonus(self, ranker):
        ranked = ranker.rank(
            [make_slot(DAY, "13:30", staff="boris"), make_slot(DAY, "13:30", staff="Anna")],
            time(15, 0),
            DAY,
            preferred_staff="anna",
        )
        assert ranked[0].slot.staff_id == "Anna"
        assert ranked[0].score == 350
        assert ranked[0].staff_match
        assert ranked[1].score == 300

    def test_best_match_independent_of_bonus(self, ranker):
        ranked = ranker.rank([make_slot(DAY, "16:30", staff="anna")], time(15, 0), DAY, preferred_staff="anna")
        assert ranked[0].score == 350
        assert not ranked[0].is_best_match

    def test_configurable_constants(self):
        settings = Settings(_env_file=None, score_within_1h=10, staff_match_bonus=1)
        ranked = AlternativeSlotRanker(settings).rank(
            [make_slot(DAY, "15:00")], time(15, 0), DAY, preferred_staff="anna"
        )
        assert ranked[0].score == 11


class TestOrdering:
    def test_empty_candidates(self, ranker):
        assert ranker.rank([], time(15, 0), DAY) == []

    def test_ties_break_by_date_time_staff(self, ranker):
        candidates = [
            make_slot(NEXT_DAY, "14:30", staff="anna"),
            make_slot(DAY, "15:30", staff="boris"),
            make_slot(DAY, "15:30", staff="anna"),
            make_slot(DAY, "14:30", staff="carla"),
        ]
        ranked = ranker.rank(candidates, time(15, 0), DAY)

        assert [(r.slot.date, r.slot.time, r.slot.staff_id) for r in ranked] == [
            (DAY, time(14, 30), "carla"),
            (DAY, time(15, 30), "anna"),
            (DAY, time(15, 30), "boris"),
            (NEXT_DAY, time(14, 30), "anna"),
        ]

    def test_sorted_with_contiguous_ranks(self, ranker):
        candidates = [make_slot(DAY, f"{h:02d}:{m:02d}") for h in range(9, 21) for m in (0, 20, 40)]
        ranked = ranker.rank(list(reversed(candidates)), time(15, 0), DAY)

        scores = [r.score for r in ranked]
        assert scores == sorted(scores, reverse=True)
        assert [r.rank for r in ranked] == list(range(1, len(candidates) + 1))

    def test_deterministic_for_shuffled_input(self, ranker):
        candidates = [make_slot(DAY, "13:00", s) for s in ("d", "a", "c", "b")]
        first = ranker.rank(candidates, time(15, 0), DAY)
        second = ranker.rank(list(reversed(candidates)), time(15, 0), DAY)
        assert first == second
