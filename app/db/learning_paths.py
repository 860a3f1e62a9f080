"""
learning_paths.py - Database helper queries for learning paths

Provides insert/fetch/update functions for:
- learning_paths / learning_path_steps (templates)
- user_learning_path (one personalized copy per user)
- user_learning_path_progress / user_step_progress (enrolment and completion)
"""

import json
from typing import Optional, List, Dict, Any

import aiosqlite

from app.db.database import row_to_dict, store_operation, utcnow_iso

_PATH_COLUMNS = """id, title, description, career_goal, difficulty_level,
       estimated_duration_weeks, is_active, created_at"""


def _path_to_dict(row) -> Optional[Dict[str, Any]]:
    path = row_to_dict(row)
    if path is not None:
        path["is_active"] = bool(path.get("is_active"))
    return path


# ══════════════════════════════════════════════════════════════════════════════
# TEMPLATE PATHS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("learning_paths select")
async def list_active_paths(db: aiosqlite.Connection) -> List[Dict[str, Any]]:
    """Active template paths with their step count, oldest first."""
    cursor = await db.execute(
        """SELECT lp.id, lp.title, lp.description, lp.career_goal, lp.difficulty_level,
                  lp.estimated_duration_weeks, lp.is_active, lp.created_at,
                  (SELECT COUNT(*) FROM learning_path_steps s WHERE s.learning_path_id = lp.id) AS step_count
           FROM learning_paths lp
           WHERE lp.is_active = 1
           ORDER BY lp.created_at, lp.id"""
    )
    rows = await cursor.fetchall()
    return [_path_to_dict(r) for r in rows]


@store_operation("learning_paths select")
async def get_active_path(db: aiosqlite.Connection, path_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        f"SELECT {_PATH_COLUMNS} FROM learning_paths WHERE id = ? AND is_active = 1",
        (path_id,)
    )
    return _path_to_dict(await cursor.fetchone())


@store_operation("learning_paths select")
async def get_active_path_for_goal(db: aiosqlite.Connection, career_goal: str) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        f"""SELECT {_PATH_COLUMNS} FROM learning_paths
            WHERE career_goal = ? AND is_active = 1
            ORDER BY created_at, id
            LIMIT 1""",
        (career_goal,)
    )
    return _path_to_dict(await cursor.fetchone())


@store_operation("learning_path_steps select")
async def get_path_steps(db: aiosqlite.Connection, path_id: int) -> List[Dict[str, Any]]:
    """Template steps in order, with JSON columns decoded."""
    cursor = await db.execute(
        """SELECT id, learning_path_id, title, description, step_type, order_index,
                  estimated_hours, skills, resources, is_required
           FROM learning_path_steps
           WHERE learning_path_id = ?
           ORDER BY order_index, id""",
        (path_id,)
    )
    rows = await cursor.fetchall()
    steps = []
    for row in rows:
        step = row_to_dict(row, parse_json_fields=["skills", "resources"])
        step["is_required"] = bool(step["is_required"])
        steps.append(step)
    return steps


# ══════════════════════════════════════════════════════════════════════════════
# PERSONALIZED PATHS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("user_learning_path select")
async def get_user_path_row(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """The user's personalized path row (most recently updated, if ever duplicated)."""
    cursor = await db.execute(
        """SELECT id, user_id, path, required, created_at, updated_at
           FROM user_learning_path
           WHERE user_id = ?
           ORDER BY updated_at DESC, id DESC
           LIMIT 1""",
        (user_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    return row_to_dict(row, parse_json_fields=["path"])


@store_operation("user_learning_path select")
async def list_user_path_rows(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    cursor = await db.execute(
        """SELECT id, user_id, path, required, created_at, updated_at
           FROM user_learning_path
           WHERE user_id = ?
           ORDER BY id""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r, parse_json_fields=["path"]) for r in rows]


@store_operation("user_learning_path insert")
async def insert_user_path(db: aiosqlite.Connection, user_id: int, path: Dict[str, Any]) -> int:
    now = utcnow_iso()
    cursor = await db.execute(
        """INSERT INTO user_learning_path (user_id, path, required, created_at, updated_at)
           VALUES (?, ?, 1, ?, ?)""",
        (user_id, json.dumps(path), now, now)
    )
    await db.commit()
    return cursor.lastrowid


@store_operation("user_learning_path update")
async def update_user_path(db: aiosqlite.Connection, row_id: int, path: Dict[str, Any]) -> None:
    await db.execute(
        "UPDATE user_learning_path SET path = ?, updated_at = ? WHERE id = ?",
        (json.dumps(path), utcnow_iso(), row_id)
    )
    await db.commit()


# ══════════════════════════════════════════════════════════════════════════════
# ENROLMENT / STEP PROGRESS
# ══════════════════════════════════════════════════════════════════════════════

@store_operation("user_learning_path_progress select")
async def get_enrollment(db: aiosqlite.Connection, user_id: int, path_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        """SELECT * FROM user_learning_path_progress
           WHERE user_id = ? AND learning_path_id = ?""",
        (user_id, path_id)
    )
    return row_to_dict(await cursor.fetchone())


@store_operation("user_learning_path_progress insert")
async def create_enrollment(db: aiosqlite.Connection, user_id: int, path_id: int) -> None:
    await db.execute(
        """INSERT INTO user_learning_path_progress (user_id, learning_path_id, progress_percentage, started_at)
           VALUES (?, ?, 0, ?)
           ON CONFLICT(user_id, learning_path_id) DO NOTHING""",
        (user_id, path_id, utcnow_iso())
    )
    await db.commit()


@store_operation("user_learning_path_progress select")
async def list_enrollments(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    """Enrolments with their template title."""
    cursor = await db.execute(
        """SELECT p.learning_path_id, p.progress_percentage, p.started_at, p.completed_at,
                  lp.title AS learning_path_title
           FROM user_learning_path_progress p
           LEFT JOIN learning_paths lp ON lp.id = p.learning_path_id
           WHERE p.user_id = ?
           ORDER BY p.started_at, p.id""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("user_learning_path_progress update")
async def update_enrollment_progress(
    db: aiosqlite.Connection,
    user_id: int,
    path_id: int,
    progress_percentage: int,
    completed_at: Optional[str]
) -> None:
    await db.execute(
        """UPDATE user_learning_path_progress
           SET progress_percentage = ?, completed_at = ?
           WHERE user_id = ? AND learning_path_id = ?""",
        (progress_percentage, completed_at, user_id, path_id)
    )
    await db.commit()


@store_operation("user_step_progress insert")
async def record_step_completion(
    db: aiosqlite.Connection,
    user_id: int,
    step_id: int,
    path_id: int,
    time_spent_hours: float = 0,
    rating: Optional[int] = None,
    notes: Optional[str] = None
) -> None:
    """Mark a step complete; completing it again is a no-op."""
    await db.execute(
        """INSERT INTO user_step_progress
           (user_id, step_id, learning_path_id, time_spent_hours, rating, notes, completed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(user_id, step_id) DO NOTHING""",
        (user_id, step_id, path_id, time_spent_hours, rating, notes, utcnow_iso())
    )
    await db.commit()


@store_operation("user_step_progress select")
async def list_completed_step_ids(db: aiosqlite.Connection, user_id: int, path_id: int) -> List[int]:
    cursor = await db.execute(
        """SELECT step_id FROM user_step_progress
           WHERE user_id = ? AND learning_path_id = ?
           ORDER BY completed_at, id""",
        (user_id, path_id)
    )
    rows = await cursor.fetchall()
    return [r["step_id"] for r in rows]


@store_operation("learning_path_steps select")
async def count_path_steps(db: aiosqlite.Connection, path_id: int) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) AS n FROM learning_path_steps WHERE learning_path_id = ?",
        (path_id,)
    )
    row = await cursor.fetchone()
    return row["n"] if row else 0
