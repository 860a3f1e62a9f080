"""
curriculum.py - Database helper queries for users, curriculum and enrolment

Provides fetch/update functions for:
- users (profile flags used by onboarding)
- courses / subjects / modules
- user_course_assignments (source of a user's assigned modules)
- user_subject_selections
"""

import json
from typing import Optional, List, Dict, Any, Iterable

import aiosqlite

from app.db.database import row_to_dict, store_operation, utcnow_iso

PROFILE_FIELDS = (
    "onboarding_completed",
    "subject_selection_completed",
    "assessment_completed_at",
    "career_goals",
    "focus_areas",
)


def placeholders(values: Iterable[Any]) -> str:
    """Return "?, ?, ?" for an IN (...) clause."""
    return ", ".join("?" for _ in values)


# ══════════════════════════════════════════════════════════════════════════════
# USERS / PROFILES
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("users select")
async def get_user(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """Get a user profile by ID, with JSON profile lists decoded."""
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    user = row_to_dict(row, parse_json_fields=["career_goals", "focus_areas"])
    for field in ("career_goals", "focus_areas"):
        if not isinstance(user.get(field), list):
            user[field] = []
    user["onboarding_completed"] = bool(user.get("onboarding_completed"))
    user["subject_selection_completed"] = bool(user.get("subject_selection_completed"))
    return user


@store_operation("users update")
async def update_profile(db: aiosqlite.Connection, user_id: int, **fields: Any) -> None:
    """Patch profile columns. Unknown keys are rejected."""
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
    if not fields:
        return

    assignments = []
    params: List[Any] = []
    for key, value in fields.items():
        if isinstance(value, bool):
            value = int(value)
        elif isinstance(value, list):
            value = json.dumps(value)
        assignments.append(f"{key} = ?")
        params.append(value)
    assignments.append("updated_at = ?")
    params.append(utcnow_iso())
    params.append(user_id)

    await db.execute(
        f"UPDATE users SET {', '.join(assignments)} WHERE id = ?",
        tuple(params),
    )
    await db.commit()


# ══════════════════════════════════════════════════════════════════════════════
# COURSES / SUBJECTS / MODULES
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("user_course_assignments select")
async def get_assigned_course_ids(db: aiosqlite.Connection, user_id: int) -> List[int]:
    """Course IDs the user is enrolled in, in assignment order."""
    cursor = await db.execute(
        "SELECT course_id FROM user_course_assignments WHERE user_id = ? ORDER BY id",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [r["course_id"] for r in rows]


@store_operation("courses select")
async def get_courses_by_ids(db: aiosqlite.Connection, course_ids: List[int]) -> List[Dict[str, Any]]:
    if not course_ids:
        return []
    cursor = await db.execute(
        f"SELECT id, title, description FROM courses WHERE id IN ({placeholders(course_ids)}) ORDER BY id",
        tuple(course_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("subjects select")
async def get_subjects_for_courses(db: aiosqlite.Connection, course_ids: List[int]) -> List[Dict[str, Any]]:
    """Subjects belonging to any of the given courses, ordered by order_index."""
    if not course_ids:
        return []
    cursor = await db.execute(
        f"""SELECT id, title, course_id, order_index FROM subjects
            WHERE course_id IN ({placeholders(course_ids)})
            ORDER BY order_index, id""",
        tuple(course_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("subjects select")
async def get_subjects_by_ids(db: aiosqlite.Connection, subject_ids: List[int]) -> List[Dict[str, Any]]:
    if not subject_ids:
        return []
    cursor = await db.execute(
        f"""SELECT id, title, course_id, order_index FROM subjects
            WHERE id IN ({placeholders(subject_ids)})
            ORDER BY order_index, id""",
        tuple(subject_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("modules select")
async def get_modules_for_subjects(db: aiosqlite.Connection, subject_ids: List[int]) -> List[Dict[str, Any]]:
    if not subject_ids:
        return []
    cursor = await db.execute(
        f"""SELECT id, title, subject_id, order_index, slug, status FROM modules
            WHERE subject_id IN ({placeholders(subject_ids)})
            ORDER BY order_index, id""",
        tuple(subject_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("modules select")
async def get_modules_with_subjects(db: aiosqlite.Connection, module_ids: List[int]) -> List[Dict[str, Any]]:
    """Modules by ID joined with their subject title."""
    if not module_ids:
        return []
    cursor = await db.execute(
        f"""SELECT m.id, m.title, m.subject_id, s.title AS subject_title
            FROM modules m
            LEFT JOIN subjects s ON s.id = m.subject_id
            WHERE m.id IN ({placeholders(module_ids)})""",
        tuple(module_ids)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("assigned modules select")
async def get_assigned_module_ids(db: aiosqlite.Connection, user_id: int) -> List[int]:
    """Modules reachable through the user's course assignments (course → subject → module)."""
    cursor = await db.execute(
        """SELECT DISTINCT m.id
           FROM user_course_assignments uca
           JOIN subjects s ON s.course_id = uca.course_id
           JOIN modules m ON m.subject_id = s.id
           WHERE uca.user_id = ?
           ORDER BY m.id""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [r["id"] for r in rows]


# ══════════════════════════════════════════════════════════════════════════════
# SUBJECT SELECTIONS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("user_subject_selections select")
async def get_subject_selection(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        "SELECT * FROM user_subject_selections WHERE user_id = ?",
        (user_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    selection = row_to_dict(row, parse_json_fields=["selected_subjects"])
    if not isinstance(selection.get("selected_subjects"), list):
        selection["selected_subjects"] = []
    return selection


async def get_selected_subject_ids(db: aiosqlite.Connection, user_id: int) -> List[int]:
    """Selected subject IDs, or an empty list when the user never chose any."""
    selection = await get_subject_selection(db, user_id)
    if not selection:
        return []
    ids = []
    for value in selection["selected_subjects"]:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids


@store_operation("user_subject_selections upsert")
async def save_subject_selection(
    db: aiosqlite.Connection,
    user_id: int,
    subject_ids: Optional[List[int]] = None,
) -> Dict[str, Any]:
    """Insert or update the user's selection row.

    Passing subject_ids=None only touches updated_at on an existing row
    (inserting an empty selection when there is none).
    """
    now = utcnow_iso()
    if subject_ids is None:
        await db.execute(
            """INSERT INTO user_subject_selections (user_id, selected_subjects, created_at, updated_at)
               VALUES (?, '[]', ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET updated_at = excluded.updated_at""",
            (user_id, now, now)
        )
    else:
        await db.execute(
            """INSERT INTO user_subject_selections (user_id, selected_subjects, created_at, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   selected_subjects = excluded.selected_subjects,
                   updated_at = excluded.updated_at""",
            (user_id, json.dumps(subject_ids), now, now)
        )
    await db.commit()
    return await get_subject_selection(db, user_id)
