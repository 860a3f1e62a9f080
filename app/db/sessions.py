"""
sessions.py - Database helper queries for resumable assessment sessions

Provides insert/fetch/update functions for:
- assessment_sessions (status: in_progress → completed | abandoned)
- assessment_session_responses (scratch answers, one row per q_index)
"""

from typing import Optional, List, Dict, Any

import aiosqlite

from app.db.database import row_to_dict, store_operation, utcnow_iso

SESSION_IN_PROGRESS = "in_progress"
SESSION_COMPLETED = "completed"
SESSION_ABANDONED = "abandoned"

_SESSION_COLUMNS = "id, user_id, assessment_id, current_position, started_at, last_updated, status"


# ══════════════════════════════════════════════════════════════════════════════
# SESSIONS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("assessment_sessions select")
async def get_current_session(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """Latest in-progress session for a user (latest wins if several exist)."""
    cursor = await db.execute(
        f"""SELECT {_SESSION_COLUMNS} FROM assessment_sessions
            WHERE user_id = ? AND status = ?
            ORDER BY last_updated DESC, id DESC
            LIMIT 1""",
        (user_id, SESSION_IN_PROGRESS)
    )
    return row_to_dict(await cursor.fetchone())


@store_operation("assessment_sessions select")
async def get_session(db: aiosqlite.Connection, session_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        f"SELECT {_SESSION_COLUMNS} FROM assessment_sessions WHERE id = ?",
        (session_id,)
    )
    return row_to_dict(await cursor.fetchone())


@store_operation("assessment_sessions insert")
async def create_session(db: aiosqlite.Connection, user_id: int, assessment_id: int) -> Dict[str, Any]:
    """Open a new in-progress session at position 0. Returns the row."""
    now = utcnow_iso()
    cursor = await db.execute(
        """INSERT INTO assessment_sessions
           (user_id, assessment_id, current_position, started_at, last_updated, status)
           VALUES (?, ?, 0, ?, ?, ?)""",
        (user_id, assessment_id, now, now, SESSION_IN_PROGRESS)
    )
    await db.commit()
    return await get_session(db, cursor.lastrowid)


@store_operation("assessment_sessions update")
async def update_session_position(db: aiosqlite.Connection, session_id: int, position: int) -> None:
    await db.execute(
        "UPDATE assessment_sessions SET current_position = ?, last_updated = ? WHERE id = ?",
        (position, utcnow_iso(), session_id)
    )
    await db.commit()


@store_operation("assessment_sessions update")
async def touch_session(db: aiosqlite.Connection, session_id: int) -> None:
    await db.execute(
        "UPDATE assessment_sessions SET last_updated = ? WHERE id = ?",
        (utcnow_iso(), session_id)
    )
    await db.commit()


@store_operation("assessment_sessions update")
async def set_session_status(db: aiosqlite.Connection, session_id: int, status: str) -> None:
    await db.execute(
        "UPDATE assessment_sessions SET status = ?, last_updated = ? WHERE id = ?",
        (status, utcnow_iso(), session_id)
    )
    await db.commit()


@store_operation("assessment_sessions update")
async def complete_sessions_for_assessment(db: aiosqlite.Connection, assessment_id: int) -> None:
    """Close every in-progress session backing a finished assessment."""
    await db.execute(
        """UPDATE assessment_sessions SET status = ?, last_updated = ?
           WHERE assessment_id = ? AND status = ?""",
        (SESSION_COMPLETED, utcnow_iso(), assessment_id, SESSION_IN_PROGRESS)
    )
    await db.commit()


# ══════════════════════════════════════════════════════════════════════════════
# SESSION RESPONSES
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("assessment_session_responses select")
async def get_session_responses(db: aiosqlite.Connection, session_id: int) -> List[Dict[str, Any]]:
    """Saved answers for a session in question order."""
    cursor = await db.execute(
        """SELECT id, session_id, q_index, question_id, answer_text, skipped, created_at
           FROM assessment_session_responses
           WHERE session_id = ?
           ORDER BY q_index""",
        (session_id,)
    )
    rows = await cursor.fetchall()
    responses = []
    for row in rows:
        r = row_to_dict(row)
        r["skipped"] = bool(r["skipped"])
        responses.append(r)
    return responses


@store_operation("assessment_session_responses upsert")
async def upsert_session_responses(
    db: aiosqlite.Connection,
    session_id: int,
    responses: List[Dict[str, Any]]
) -> int:
    """Insert or overwrite scratch answers keyed by (session_id, q_index)."""
    for r in responses:
        await db.execute(
            """INSERT INTO assessment_session_responses
               (session_id, q_index, question_id, answer_text, skipped, created_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(session_id, q_index) DO UPDATE SET
                   question_id = excluded.question_id,
                   answer_text = excluded.answer_text,
                   skipped = excluded.skipped""",
            (
                session_id,
                r["q_index"],
                r.get("question_id"),
                r.get("answer_text"),
                int(bool(r.get("skipped"))),
                utcnow_iso(),
            )
        )
    await db.commit()
    return len(responses)
