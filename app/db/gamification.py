"""
gamification.py - Database helper queries for the XP / streak ledger

Provides insert/fetch functions for:
- user_progress (running XP total and level)
- user_question_progress (attempt counters per question)
- user_lecture_completions
- user_activity_days (one row per active calendar day)
- xp_log (append-only history)
"""

import json
from typing import Optional, List, Dict, Any

import aiosqlite

from app.db.database import row_to_dict, store_operation, utcnow_iso


@store_operation("user_progress select")
async def get_user_progress(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        "SELECT user_id, total_xp, current_level, last_xp_event_at FROM user_progress WHERE user_id = ?",
        (user_id,)
    )
    return row_to_dict(await cursor.fetchone())


@store_operation("user_progress upsert")
async def save_user_progress(db: aiosqlite.Connection, user_id: int, total_xp: int, level: int) -> None:
    await db.execute(
        """INSERT INTO user_progress (user_id, total_xp, current_level, last_xp_event_at)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
               total_xp = excluded.total_xp,
               current_level = excluded.current_level,
               last_xp_event_at = excluded.last_xp_event_at""",
        (user_id, total_xp, level, utcnow_iso())
    )
    await db.commit()


@store_operation("user_question_progress select")
async def get_question_progress(db: aiosqlite.Connection, user_id: int, question_id: str) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        """SELECT question_id, attempts_count, first_attempt_correct, second_attempt_correct, total_xp_earned
           FROM user_question_progress
           WHERE user_id = ? AND question_id = ?""",
        (user_id, question_id)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    progress = row_to_dict(row)
    progress["first_attempt_correct"] = bool(progress["first_attempt_correct"])
    progress["second_attempt_correct"] = bool(progress["second_attempt_correct"])
    return progress


@store_operation("user_question_progress upsert")
async def save_question_progress(db: aiosqlite.Connection, user_id: int, progress: Dict[str, Any]) -> None:
    await db.execute(
        """INSERT INTO user_question_progress
           (user_id, question_id, attempts_count, first_attempt_correct, second_attempt_correct,
            total_xp_earned, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(user_id, question_id) DO UPDATE SET
               attempts_count = excluded.attempts_count,
               first_attempt_correct = excluded.first_attempt_correct,
               second_attempt_correct = excluded.second_attempt_correct,
               total_xp_earned = excluded.total_xp_earned,
               updated_at = excluded.updated_at""",
        (
            user_id,
            progress["question_id"],
            progress["attempts_count"],
            int(progress["first_attempt_correct"]),
            int(progress["second_attempt_correct"]),
            progress["total_xp_earned"],
            utcnow_iso(),
        )
    )
    await db.commit()


@store_operation("user_lecture_completions select")
async def has_completed_lecture(db: aiosqlite.Connection, user_id: int, lecture_id: str) -> bool:
    cursor = await db.execute(
        "SELECT id FROM user_lecture_completions WHERE user_id = ? AND lecture_id = ?",
        (user_id, lecture_id)
    )
    return await cursor.fetchone() is not None


@store_operation("user_lecture_completions insert")
async def record_lecture_completion(db: aiosqlite.Connection, user_id: int, lecture_id: str, xp_awarded: int) -> None:
    await db.execute(
        """INSERT INTO user_lecture_completions (user_id, lecture_id, xp_awarded, completed_at)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(user_id, lecture_id) DO NOTHING""",
        (user_id, lecture_id, xp_awarded, utcnow_iso())
    )
    await db.commit()


@store_operation("user_activity_days upsert")
async def mark_activity_day(db: aiosqlite.Connection, user_id: int, activity_date: str) -> None:
    """Record activity on a calendar day (YYYY-MM-DD)."""
    await db.execute(
        """INSERT INTO user_activity_days (user_id, activity_date, activity_count, last_activity_at)
           VALUES (?, ?, 1, ?)
           ON CONFLICT(user_id, activity_date) DO UPDATE SET
               activity_count = user_activity_days.activity_count + 1,
               last_activity_at = excluded.last_activity_at""",
        (user_id, activity_date, utcnow_iso())
    )
    await db.commit()


@store_operation("user_activity_days select")
async def get_activity_days(db: aiosqlite.Connection, user_id: int, since: str) -> List[Dict[str, Any]]:
    """Activity rows on or after `since` (YYYY-MM-DD), oldest first."""
    cursor = await db.execute(
        """SELECT activity_date, activity_count, last_activity_at
           FROM user_activity_days
           WHERE user_id = ? AND activity_date >= ?
           ORDER BY activity_date""",
        (user_id, since)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("xp_log insert")
async def log_xp(
    db: aiosqlite.Connection,
    user_id: int,
    amount: int,
    source: str,
    detail: Optional[Dict[str, Any]] = None
) -> int:
    cursor = await db.execute(
        "INSERT INTO xp_log (user_id, amount, source, detail, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, amount, source, json.dumps(detail) if detail else None, utcnow_iso())
    )
    await db.commit()
    return cursor.lastrowid
