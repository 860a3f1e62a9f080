"""
assessments.py - Database helper queries for finished assessment runs

Provides insert/fetch functions for:
- assessments (one row per run; patched with score/passed on finish)
- assessment_responses (immutable per-question ledger written on finish)
"""

from typing import Optional, List, Dict, Any

import aiosqlite

from app.db.database import row_to_dict, store_operation, utcnow_iso

_ASSESSMENT_COLUMNS = "id, user_id, started_at, completed_at, score, passed"


def _assessment_to_dict(row) -> Optional[Dict[str, Any]]:
    assessment = row_to_dict(row)
    if assessment and assessment.get("passed") is not None:
        assessment["passed"] = bool(assessment["passed"])
    return assessment


# ══════════════════════════════════════════════════════════════════════════════
# ASSESSMENTS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("assessments insert")
async def create_assessment(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    """Create a new, unfinished assessment for a user. Returns the row."""
    cursor = await db.execute(
        "INSERT INTO assessments (user_id, started_at) VALUES (?, ?)",
        (user_id, utcnow_iso())
    )
    await db.commit()
    return await get_assessment(db, cursor.lastrowid)


@store_operation("assessments select")
async def get_assessment(db: aiosqlite.Connection, assessment_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments WHERE id = ?",
        (assessment_id,)
    )
    return _assessment_to_dict(await cursor.fetchone())


@store_operation("assessments select")
async def get_latest_assessment(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """Most recently started assessment for a user."""
    cursor = await db.execute(
        f"""SELECT {_ASSESSMENT_COLUMNS} FROM assessments
            WHERE user_id = ?
            ORDER BY started_at DESC, id DESC
            LIMIT 1""",
        (user_id,)
    )
    return _assessment_to_dict(await cursor.fetchone())


@store_operation("assessments select")
async def count_completed_assessments(db: aiosqlite.Connection, user_id: int) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) AS n FROM assessments WHERE user_id = ? AND completed_at IS NOT NULL",
        (user_id,)
    )
    row = await cursor.fetchone()
    return row["n"] if row else 0


@store_operation("assessments update")
async def complete_assessment(
    db: aiosqlite.Connection,
    assessment_id: int,
    score: int,
    passed: bool
) -> Dict[str, Any]:
    """Stamp completion data on an assessment. Returns the updated row."""
    await db.execute(
        "UPDATE assessments SET completed_at = ?, score = ?, passed = ? WHERE id = ?",
        (utcnow_iso(), score, int(passed), assessment_id)
    )
    await db.commit()
    return await get_assessment(db, assessment_id)


# ══════════════════════════════════════════════════════════════════════════════
# ASSESSMENT RESPONSES
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("assessment_responses insert")
async def insert_responses(db: aiosqlite.Connection, responses: List[Dict[str, Any]]) -> int:
    """Write a finished run's responses in one commit. Returns the number of rows."""
    for r in responses:
        await db.execute(
            """INSERT INTO assessment_responses
               (assessment_id, q_index, question_id, user_id, module_id, answer_text, correct, skipped)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                r["assessment_id"],
                r["q_index"],
                r.get("question_id"),
                r["user_id"],
                r.get("module_id"),
                r.get("answer_text"),
                int(bool(r.get("correct"))),
                int(bool(r.get("skipped"))),
            )
        )
    await db.commit()
    return len(responses)


@store_operation("assessment_responses select")
async def get_user_responses(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    """Every ledger row for a user, across all assessments."""
    cursor = await db.execute(
        """SELECT assessment_id, q_index, question_id, module_id, answer_text, correct, skipped
           FROM assessment_responses
           WHERE user_id = ?
           ORDER BY assessment_id, q_index""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    responses = []
    for row in rows:
        r = row_to_dict(row)
        r["correct"] = bool(r["correct"])
        r["skipped"] = bool(r["skipped"])
        responses.append(r)
    return responses


@store_operation("assessment_responses select")
async def get_incorrect_counts_by_module(db: aiosqlite.Connection, user_id: int) -> Dict[int, int]:
    """Count of wrong, non-skipped answers per module across all of a user's assessments."""
    cursor = await db.execute(
        """SELECT module_id, COUNT(*) AS incorrect
           FROM assessment_responses
           WHERE user_id = ? AND module_id IS NOT NULL AND correct = 0 AND skipped = 0
           GROUP BY module_id""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return {r["module_id"]: r["incorrect"] for r in rows}
