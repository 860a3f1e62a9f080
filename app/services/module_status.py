"""
module_status.py - Per-user module classification from assessment results

Provides:
- compute_module_status(responses, assigned_module_ids) - Pure aggregation
- sync_user_module_status(db, user_id) - Recompute and upsert from the ledger
- seed_mandatory_module_status(db, user_id) - 0% / mandatory for every assigned module
"""

import logging
from typing import Dict, Any, Iterable, List, Optional

import aiosqlite

from app.config import settings
from app.db import assessments as assessment_store
from app.db import curriculum
from app.db import module_status as status_store
from app.services.gamification import round_half_up

logger = logging.getLogger(__name__)

STATUS_MANDATORY = "mandatory"
STATUS_OPTIONAL = "optional"


def classify(percentage: Optional[int], threshold: Optional[int] = None) -> str:
    limit = settings.optional_module_threshold if threshold is None else threshold
    if percentage is not None and percentage >= limit:
        return STATUS_OPTIONAL
    return STATUS_MANDATORY


def compute_module_status(
    responses: Iterable[Dict[str, Any]],
    assigned_module_ids: Iterable[int],
) -> List[Dict[str, Any]]:
    """Aggregate ledger rows into one status record per module.

    Only responses with a non-empty answer_text count towards the total.
    A module whose responses were all skipped still gets a 0% record, and
    assigned modules with no responses at all are forced to 0% / mandatory.
    """
    stats: Dict[int, Dict[str, int]] = {}
    for response in responses:
        module_id = response.get("module_id")
        if not module_id:
            continue
        entry = stats.setdefault(module_id, {"correct": 0, "total": 0})
        if response.get("answer_text") not in (None, ""):
            entry["total"] += 1
            if response.get("correct"):
                entry["correct"] += 1

    records = []
    for module_id, entry in stats.items():
        percentage = round_half_up(100 * entry["correct"] / entry["total"]) if entry["total"] else 0
        records.append({
            "module_id": module_id,
            "status": classify(percentage),
            "correctness_percentage": percentage,
        })

    for module_id in assigned_module_ids:
        if module_id not in stats:
            records.append({
                "module_id": module_id,
                "status": STATUS_MANDATORY,
                "correctness_percentage": 0,
            })
    return records


async def sync_user_module_status(db: aiosqlite.Connection, user_id: int) -> Dict[int, int]:
    """Recompute every module status for a user. Returns {module_id: percentage}."""
    responses = await assessment_store.get_user_responses(db, user_id)
    assigned = await curriculum.get_assigned_module_ids(db, user_id)

    records = compute_module_status(responses, assigned)
    if records:
        await status_store.upsert_module_statuses(db, user_id, records)
        logger.info(f"Synced status for {len(records)} modules of user {user_id}")

    return {r["module_id"]: r["correctness_percentage"] for r in records}


async def seed_mandatory_module_status(db: aiosqlite.Connection, user_id: int) -> Dict[str, int]:
    assigned = await curriculum.get_assigned_module_ids(db, user_id)
    if not assigned:
        return {"inserted": 0}

    records = [
        {"module_id": module_id, "status": STATUS_MANDATORY, "correctness_percentage": 0}
        for module_id in assigned
    ]
    await status_store.upsert_module_statuses(db, user_id, records)
    logger.info(f"Seeded {len(records)} mandatory module statuses for user {user_id}")
    return {"inserted": len(records)}
