"""Tests for the XP, level, tier and streak arithmetic."""

from datetime import date, timedelta

import pytest

from app.services import gamification as g


class TestAttemptXp:

    @pytest.mark.parametrize("attempt", [1, 2, 3, 4])
    def test_incorrect_attempts_never_score(self, attempt):
        assert g.xp_for_attempt(attempt, False, "hard", "quiz") == 0

    @pytest.mark.parametrize("attempt", [3, 4, 10])
    def test_third_attempt_onwards_scores_nothing(self, attempt):
        assert g.xp_for_attempt(attempt, True, "hard", "practice") == 0

    def test_first_attempt_full_credit(self):
        assert g.xp_for_attempt(1, True, "easy", "quiz") == 15
        assert g.xp_for_attempt(1, True, "hard", "practice") == 60

    def test_second_attempt_fraction(self):
        # 40 * 0.4
        assert g.xp_for_attempt(2, True, "hard", "quiz") == 16
        assert g.xp_for_attempt(2, True, "medium", "practice") == 16

    def test_second_attempt_rounds_half_up(self):
        config = g.GamificationConfig(second_attempt_multiplier=0.5)
        # 25 * 0.5 = 12.5
        assert g.xp_for_attempt(2, True, "medium", "quiz", config) == 13

    def test_round_half_up(self):
        assert [g.round_half_up(v) for v in (12.5, 62.5, 0.5, 87.4, 66.67, 0)] == [13, 63, 1, 87, 67, 0]

    def test_unknown_difficulty_falls_back_to_medium(self):
        assert g.xp_for_attempt(1, True, "legendary", "quiz") == 25

    def test_question_progress_sequence(self):
        first = g.calculate_question_xp("q1", "quiz", "medium", False)
        assert first["xp_awarded"] == 0
        assert first["progress"]["attempts_count"] == 1
        assert first["progress"]["first_attempt_correct"] is False

        second = g.calculate_question_xp("q1", "quiz", "medium", True, first["progress"])
        assert second["xp_awarded"] == 10
        assert second["progress"]["attempts_count"] == 2
        assert second["progress"]["second_attempt_correct"] is True
        assert second["progress"]["total_xp_earned"] == 10

        third = g.calculate_question_xp("q1", "quiz", "medium", True, second["progress"])
        assert third["xp_awarded"] == 0
        assert third["progress"]["total_xp_earned"] == 10

    def test_lecture_xp_only_once(self):
        assert g.calculate_lecture_xp(False) == 50
        assert g.calculate_lecture_xp(True) == 0


class TestLevels:

    def test_thresholds(self):
        assert g.xp_to_reach_level(1) == 0
        assert g.xp_to_reach_level(2) == 200
        assert g.xp_to_reach_level(3) == 500
        assert g.xp_to_reach_level(4) == 900

    def test_level_for_xp(self):
        assert g.level_for_xp(0) == 1
        assert g.level_for_xp(199) == 1
        assert g.level_for_xp(200) == 2
        assert g.level_for_xp(499) == 2
        assert g.level_for_xp(500) == 3

    def test_level_round_trips_threshold(self):
        for level in range(1, 40):
            assert g.level_for_xp(g.xp_to_reach_level(level)) == level

    def test_level_is_monotonic(self):
        levels = [g.level_for_xp(xp) for xp in range(0, 5000, 7)]
        assert levels == sorted(levels)

    def test_xp_to_next_level(self):
        assert g.xp_to_next_level(500) == {"next_level": 4, "xp_for_next_level": 900, "xp_remaining": 400}
        assert g.xp_to_next_level(0) == {"next_level": 2, "xp_for_next_level": 200, "xp_remaining": 200}

    def test_level_progress_percent(self):
        assert g.level_progress_percent(0) == 0
        assert g.level_progress_percent(350) == 50


class TestTiersAndStreaks:

    def test_tiers(self):
        assert g.tier_for_xp(0) == "Bronze"
        assert g.tier_for_xp(10000) == "Silver"
        assert g.tier_for_xp(15000) == "Gold"
        assert g.tier_for_xp(25000) == "Platinum"

    def test_freeze_allowance(self):
        assert g.freeze_allowance("Bronze", 500) == 1
        assert g.freeze_allowance("Silver", 10000) == 2
        assert g.freeze_allowance(None, 15000) == 2

    def test_freeze_covers_a_gap(self):
        day1 = date(2026, 3, 1)
        calendar = {day1 + timedelta(days=i): i != 2 for i in range(5)}
        assert g.streak_with_freezes(calendar, 2) == 5

    def test_no_freeze_resets_at_gap(self):
        day1 = date(2026, 3, 1)
        calendar = {day1 + timedelta(days=i): i != 2 for i in range(5)}
        assert g.streak_with_freezes(calendar, 0) == 2

    def test_string_days_and_trailing_absence(self):
        calendar = {
            "2026-03-01": True,
            "2026-03-02": True,
            "2026-03-03": False,
        }
        # walk starts at the last present day, so the trailing absence costs nothing
        assert g.streak_with_freezes(calendar, 0) == 2

    def test_empty_calendar(self):
        assert g.streak_with_freezes({}, 2) == 0
        assert g.streak_with_freezes({"2026-03-01": False}, 2) == 0
