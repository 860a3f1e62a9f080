"""
questions.py - Database helper queries for the assessment question bank

Provides fetch functions for:
- assessment_questions (joined with their module's subject)
- assessment_question_options
- assessment_text_answers
"""

from typing import Optional, List, Dict, Any

import aiosqlite

from app.db.curriculum import placeholders
from app.db.database import row_to_dict, store_operation

_QUESTION_COLUMNS = """q.id, q.module_id, q.question_type, q.question_text,
       q.question_image_url, q.points_value, q.time_limit_seconds,
       q.is_active, q.created_at, m.subject_id AS subject_id"""


@store_operation("assessment_questions select")
async def get_active_questions(db: aiosqlite.Connection) -> List[Dict[str, Any]]:
    """All active questions, oldest first. Type filtering happens in the scorer."""
    cursor = await db.execute(
        f"""SELECT {_QUESTION_COLUMNS}
            FROM assessment_questions q
            LEFT JOIN modules m ON m.id = q.module_id
            WHERE (q.is_active IS NULL OR q.is_active = 1)
            ORDER BY q.created_at, q.id"""
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("assessment_questions select")
async def get_questions_by_ids(db: aiosqlite.Connection, question_ids: List[int]) -> List[Dict[str, Any]]:
    """Questions by ID regardless of active flag (answers are scored against what was served)."""
    if not question_ids:
        return []
    cursor = await db.execute(
        f"""SELECT {_QUESTION_COLUMNS}
            FROM assessment_questions q
            LEFT JOIN modules m ON m.id = q.module_id
            WHERE q.id IN ({placeholders(question_ids)})
            ORDER BY q.created_at, q.id""",
        tuple(question_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("assessment_question_options select")
async def get_options_for_questions(
    db: aiosqlite.Connection,
    question_ids: List[int]
) -> Dict[int, List[Dict[str, Any]]]:
    """Options grouped by question, each list in display order."""
    grouped: Dict[int, List[Dict[str, Any]]] = {}
    if not question_ids:
        return grouped
    cursor = await db.execute(
        f"""SELECT id, question_id, option_text, is_correct, order_index
            FROM assessment_question_options
            WHERE question_id IN ({placeholders(question_ids)})
            ORDER BY question_id, order_index, id""",
        tuple(question_ids)
    )
    for row in await cursor.fetchall():
        option = row_to_dict(row)
        option["is_correct"] = bool(option["is_correct"])
        grouped.setdefault(option["question_id"], []).append(option)
    return grouped


@store_operation("assessment_text_answers select")
async def get_text_answers_for_questions(
    db: aiosqlite.Connection,
    question_ids: List[int]
) -> Dict[int, Dict[str, Any]]:
    """Text answer specs keyed by question ID."""
    specs: Dict[int, Dict[str, Any]] = {}
    if not question_ids:
        return specs
    cursor = await db.execute(
        f"""SELECT question_id, correct_answer, case_sensitive, exact_match,
                   alternate_answers, keywords
            FROM assessment_text_answers
            WHERE question_id IN ({placeholders(question_ids)})""",
        tuple(question_ids)
    )
    for row in await cursor.fetchall():
        spec = row_to_dict(row, parse_json_fields=["alternate_answers", "keywords"])
        spec["case_sensitive"] = bool(spec["case_sensitive"])
        spec["exact_match"] = bool(spec["exact_match"])
        for field in ("alternate_answers", "keywords"):
            if not isinstance(spec.get(field), list):
                spec[field] = []
        specs[spec["question_id"]] = spec
    return specs


async def get_question(db: aiosqlite.Connection, question_id: int) -> Optional[Dict[str, Any]]:
    rows = await get_questions_by_ids(db, [question_id])
    return rows[0] if rows else None
