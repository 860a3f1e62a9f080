"""Tests for XP ledger writes and the progress summary."""

from datetime import date, timedelta

from app.services import gamification_summary as summary

from helpers import create_user, run_with_db


class TestQuestionAttempts:

    def test_second_attempt_earns_partial_xp(self):
        async def scenario(db):
            user_id = await create_user(db)
            wrong = await summary.record_question_attempt(db, user_id, "q-1", "quiz", "medium", False)
            right = await summary.record_question_attempt(db, user_id, "q-1", "quiz", "medium", True)
            late = await summary.record_question_attempt(db, user_id, "q-1", "quiz", "medium", True)
            cursor = await db.execute("SELECT amount, source FROM xp_log WHERE user_id = ?", (user_id,))
            log = [dict(r) for r in await cursor.fetchall()]
            return wrong, right, late, log

        wrong, right, late, log = run_with_db(scenario)
        assert wrong["xp_awarded"] == 0
        assert wrong["attempts_count"] == 1
        assert right["xp_awarded"] == 10
        assert right["total_xp"] == 10
        assert late["xp_awarded"] == 0
        assert late["attempts_count"] == 3
        # zero-XP attempts are not logged
        assert log == [{"amount": 10, "source": "question_attempt"}]

    def test_level_up(self):
        async def scenario(db):
            user_id = await create_user(db)
            result = None
            for i in range(4):
                result = await summary.record_question_attempt(db, user_id, f"q-{i}", "practice", "hard", True)
            return result

        result = run_with_db(scenario)
        assert result["total_xp"] == 240
        assert result["level"] == 2


class TestLectures:

    def test_lecture_xp_awarded_once(self):
        async def scenario(db):
            user_id = await create_user(db)
            first = await summary.record_lecture_completion(db, user_id, "lecture-1")
            second = await summary.record_lecture_completion(db, user_id, "lecture-1")
            return first, second

        first, second = run_with_db(scenario)
        assert first == {"xp_awarded": 50, "already_completed": False, "total_xp": 50, "level": 1}
        assert second["xp_awarded"] == 0
        assert second["already_completed"] is True
        assert second["total_xp"] == 50


class TestSummary:

    def test_summary_for_new_user(self):
        async def scenario(db):
            user_id = await create_user(db)
            return await summary.get_summary(db, user_id, today=date(2026, 3, 31))

        result = run_with_db(scenario)
        assert result["total_xp"] == 0
        assert result["level"] == 1
        assert result["tier"] == "Bronze"
        assert result["freeze_allowance"] == 1
        assert result["streak_days"] == 0
        assert len(result["calendar"]) == summary.CALENDAR_DAYS
        assert result["calendar"][-1]["date"] == "2026-03-31"

    def test_streak_uses_freezes(self):
        today = date(2026, 3, 31)

        async def scenario(db):
            user_id = await create_user(db)
            await db.execute(
                "INSERT INTO user_progress (user_id, total_xp, current_level) VALUES (?, 12000, 14)",
                (user_id,)
            )
            for offset in (0, 1, 3, 4):
                await db.execute(
                    "INSERT INTO user_activity_days (user_id, activity_date, activity_count) VALUES (?, ?, 2)",
                    (user_id, (today - timedelta(days=offset)).isoformat())
                )
            await db.commit()
            return await summary.get_summary(db, user_id, today=today)

        result = run_with_db(scenario)
        assert result["tier"] == "Silver"
        assert result["freeze_allowance"] == 2
        assert result["streak_days"] == 6
        present = [d for d in result["calendar"] if d["present"]]
        assert len(present) == 4
        assert present[-1]["activityCount"] == 2

    def test_activity_today_counts(self):
        async def scenario(db):
            user_id = await create_user(db)
            await summary.record_lecture_completion(db, user_id, "lecture-1")
            await summary.record_lecture_completion(db, user_id, "lecture-2")
            return await summary.get_summary(db, user_id)

        result = run_with_db(scenario)
        assert result["total_xp"] == 100
        assert result["streak_days"] == 1
        assert result["calendar"][-1]["present"] is True
        assert result["calendar"][-1]["activityCount"] == 2
        assert result["last_xp_event_at"]
