"""
gamification_summary.py - XP ledger writes and the learner's progress summary

Provides:
- record_question_attempt(db, user_id, ...) - Award XP for a question attempt
- record_lecture_completion(db, user_id, lecture_id) - Award lecture XP once
- get_summary(db, user_id) - XP, level, tier, streak and activity calendar
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Any, Optional

import aiosqlite

from app.db import gamification as ledger
from app.services import gamification as core
from app.services.best_effort import run_best_effort

logger = logging.getLogger(__name__)

CALENDAR_DAYS = 30


def _today() -> date:
    return datetime.now(timezone.utc).date()


async def _add_xp(db: aiosqlite.Connection, user_id: int, amount: int, source: str, detail: Dict[str, Any]) -> Dict[str, Any]:
    progress = await ledger.get_user_progress(db, user_id) or {}
    total_xp = int(progress.get("total_xp") or 0) + amount
    level = core.level_for_xp(total_xp)
    await ledger.save_user_progress(db, user_id, total_xp, level)

    if amount > 0:
        await run_best_effort("xp log", ledger.log_xp, db, user_id, amount, source, detail)
    await run_best_effort("activity day", ledger.mark_activity_day, db, user_id, _today().isoformat())

    if level > int(progress.get("current_level") or 1):
        logger.info(f"User {user_id} reached level {level}")
    return {"total_xp": total_xp, "level": level}


async def record_question_attempt(
    db: aiosqlite.Connection,
    user_id: int,
    question_id: str,
    question_type: str,
    difficulty: str,
    is_correct: bool
) -> Dict[str, Any]:
    previous = await ledger.get_question_progress(db, user_id, question_id)
    outcome = core.calculate_question_xp(question_id, question_type, difficulty, is_correct, previous)
    await ledger.save_question_progress(db, user_id, outcome["progress"])

    totals = await _add_xp(
        db, user_id, outcome["xp_awarded"], "question_attempt",
        {"question_id": question_id, "attempt": outcome["progress"]["attempts_count"]},
    )
    return {
        "xp_awarded": outcome["xp_awarded"],
        "attempts_count": outcome["progress"]["attempts_count"],
        **totals,
    }


async def record_lecture_completion(db: aiosqlite.Connection, user_id: int, lecture_id: str) -> Dict[str, Any]:
    completed_before = await ledger.has_completed_lecture(db, user_id, lecture_id)
    xp = core.calculate_lecture_xp(completed_before)
    if not completed_before:
        await ledger.record_lecture_completion(db, user_id, lecture_id, xp)

    totals = await _add_xp(db, user_id, xp, "lecture_completion", {"lecture_id": lecture_id})
    return {"xp_awarded": xp, "already_completed": completed_before, **totals}


async def get_summary(db: aiosqlite.Connection, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or _today()
    progress = await ledger.get_user_progress(db, user_id) or {}
    total_xp = int(progress.get("total_xp") or 0)
    level = core.level_for_xp(total_xp)

    since = today - timedelta(days=CALENDAR_DAYS - 1)
    rows = {r["activity_date"]: r for r in await ledger.get_activity_days(db, user_id, since.isoformat())}
    calendar = []
    for offset in range(CALENDAR_DAYS):
        day = (since + timedelta(days=offset)).isoformat()
        row = rows.get(day)
        calendar.append({
            "date": day,
            "present": row is not None,
            "activityCount": row["activity_count"] if row else 0,
            "lastActivityAt": row["last_activity_at"] if row else None,
        })

    tier = core.tier_for_xp(total_xp)
    allowance = core.freeze_allowance(tier, total_xp)
    return {
        "total_xp": total_xp,
        "level": level,
        "xp_to_next": core.xp_to_next_level(total_xp),
        "level_progress_percent": core.level_progress_percent(total_xp),
        "tier": tier,
        "freeze_allowance": allowance,
        "streak_days": core.streak_with_freezes({e["date"]: e["present"] for e in calendar}, allowance),
        "last_xp_event_at": progress.get("last_xp_event_at"),
        "calendar": calendar,
    }
