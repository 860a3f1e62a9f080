"""
module_status.py - Database helper queries for per-user module classification

Rows in user_module_status are upserted on (user_id, module_id) and never
deleted; a recalculation overwrites percentage, status and timestamp.
"""

from typing import List, Dict, Any

import aiosqlite

from app.db.curriculum import placeholders
from app.db.database import row_to_dict, store_operation, utcnow_iso


@store_operation("user_module_status upsert")
async def upsert_module_statuses(
    db: aiosqlite.Connection,
    user_id: int,
    records: List[Dict[str, Any]]
) -> int:
    """Merge status rows for a user. Each record needs module_id, status, correctness_percentage."""
    now = utcnow_iso()
    for record in records:
        await db.execute(
            """INSERT INTO user_module_status
               (user_id, module_id, status, correctness_percentage, last_updated)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(user_id, module_id) DO UPDATE SET
                   status = excluded.status,
                   correctness_percentage = excluded.correctness_percentage,
                   last_updated = excluded.last_updated""",
            (
                user_id,
                record["module_id"],
                record["status"],
                record["correctness_percentage"],
                record.get("last_updated") or now,
            )
        )
    await db.commit()
    return len(records)


@store_operation("user_module_status select")
async def get_module_statuses(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    """All status rows for a user, most recently updated first."""
    cursor = await db.execute(
        """SELECT id, user_id, module_id, status, correctness_percentage, last_updated
           FROM user_module_status
           WHERE user_id = ?
           ORDER BY last_updated DESC, id DESC""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [row_to_dict(r) for r in rows]


@store_operation("user_module_status select")
async def get_module_status_map(
    db: aiosqlite.Connection,
    user_id: int,
    module_ids: List[int]
) -> Dict[int, Dict[str, Any]]:
    """Status rows for the given modules keyed by module_id."""
    if not module_ids:
        return {}
    cursor = await db.execute(
        f"""SELECT module_id, status, correctness_percentage
            FROM user_module_status
            WHERE user_id = ? AND module_id IN ({placeholders(module_ids)})""",
        (user_id, *module_ids)
    )
    rows = await cursor.fetchall()
    return {r["module_id"]: row_to_dict(r) for r in rows}
