"""
learning_path.py - Learning path catalog, personalization and progress

Provides:
- get_all_paths / get_path_details / get_recommended_path - Template catalog
- get_personalized_path(db, user_id, path_id) - Stored or freshly generated copy
- refresh_user_learning_paths(db, user_id, module_scores) - Re-tag stored copies
- get_user_learning_path(db, user_id) - The copy the learner should see
- enroll_user_in_path / get_user_progress / complete_step - Enrolment tracking
- get_user_module_status / get_subject_progress_overview / get_learning_path_insights
"""

import logging
from typing import Dict, Any, List, Optional, Tuple

import aiosqlite

from app.db import curriculum
from app.db import learning_paths as path_store
from app.db import module_status as status_store
from app.db.database import utcnow_iso
from app.errors import NotFoundError
from app.services import course_structure as cs
from app.services.gamification import round_half_up
from app.services.module_status import sync_user_module_status

logger = logging.getLogger(__name__)

DEFAULT_CAREER_GOAL = "data_analyst"


# ══════════════════════════════════════════════════════════════════════════════
# TEMPLATE CATALOG
# ══════════════════════════════════════════════════════════════════════════════

async def get_all_paths(db: aiosqlite.Connection) -> List[Dict[str, Any]]:
    return await path_store.list_active_paths(db)


async def get_path_details(db: aiosqlite.Connection, path_id: int) -> Dict[str, Any]:
    path = await path_store.get_active_path(db, path_id)
    if not path:
        raise NotFoundError("Learning path", path_id)
    path["steps"] = await path_store.get_path_steps(db, path_id)
    return path


def recommended_career_goal(profile: Optional[Dict[str, Any]]) -> str:
    profile = profile or {}
    career_goals = profile.get("career_goals") or []
    focus_areas = profile.get("focus_areas") or []

    if "business" in career_goals or "business_intelligence" in focus_areas:
        return "business_analyst"
    if "data" in career_goals or "python" in focus_areas or "statistics" in focus_areas:
        return "data_analyst"
    return DEFAULT_CAREER_GOAL


async def get_recommended_path(
    db: aiosqlite.Connection,
    profile: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Template matching the profile's career goal, else the first active one."""
    goal = recommended_career_goal(profile)
    path = await path_store.get_active_path_for_goal(db, goal)
    if path:
        return path

    paths = await path_store.list_active_paths(db)
    if not paths:
        raise NotFoundError("Learning path")
    logger.info(f"No active '{goal}' path, falling back to path {paths[0]['id']}")
    return paths[0]


# ══════════════════════════════════════════════════════════════════════════════
# PERSONALIZATION
# ══════════════════════════════════════════════════════════════════════════════

async def fetch_modules_by_subject(
    db: aiosqlite.Connection,
    user_id: int
) -> Tuple[cs.ModulesBySubject, List[int]]:
    """Modules of the user's assigned courses grouped by subject, with stored status.

    Returns (modules_by_subject, assigned_module_ids).
    """
    course_ids = await curriculum.get_assigned_course_ids(db, user_id)
    subjects = await curriculum.get_subjects_for_courses(db, course_ids)
    modules = await curriculum.get_modules_for_subjects(db, [s["id"] for s in subjects])

    module_ids = []
    for module in modules:
        if module["id"] not in module_ids:
            module_ids.append(module["id"])
    status_map = await status_store.get_module_status_map(db, user_id, module_ids)

    modules_by_subject: cs.ModulesBySubject = {s["id"]: [] for s in subjects}
    seen = set()
    for module in modules:
        if module["id"] in seen or module.get("subject_id") is None:
            continue
        seen.add(module["id"])
        stored = status_map.get(module["id"]) or {}
        status = (stored.get("status") or module.get("status") or "mandatory").lower()
        status = "optional" if status == "optional" else "mandatory"
        modules_by_subject.setdefault(module["subject_id"], []).append({
            "id": module["id"],
            "title": module.get("title") or "Module",
            "subject_id": module["subject_id"],
            "order_index": module.get("order_index") or 0,
            "slug": module.get("slug"),
            "status": status,
            "is_mandatory": status != "optional",
            "assessment_score": stored.get("correctness_percentage"),
        })

    # subjects without modules stay out of the map so they cannot mask stored ones
    modules_by_subject = {k: v for k, v in modules_by_subject.items() if v}
    return modules_by_subject, module_ids


async def build_structure(db: aiosqlite.Connection, modules_by_subject: cs.ModulesBySubject) -> Dict[str, Any]:
    """Load the subject and course rows for a module map and nest them."""
    if not modules_by_subject:
        return cs.build_course_structure([], [], modules_by_subject)
    subjects = await curriculum.get_subjects_by_ids(db, list(modules_by_subject))
    course_ids = sorted({s["course_id"] for s in subjects if s.get("course_id") is not None})
    courses = await curriculum.get_courses_by_ids(db, course_ids)
    return cs.build_course_structure(subjects, courses, modules_by_subject)


async def generate_personalized_path(db: aiosqlite.Connection, user_id: int, path_id: int) -> Dict[str, Any]:
    """Build a personalized copy of a template for one user (not saved)."""
    template = await get_path_details(db, path_id)

    prior_row = await path_store.get_user_path_row(db, user_id)
    prior_copy = ((prior_row or {}).get("path") or {}).get("personalized_data")
    from_path = cs.merge_modules_by_subject(
        cs.extract_modules_by_subject(prior_copy),
        cs.extract_modules_by_subject(template),
    )

    fresh, assigned_ids = await fetch_modules_by_subject(db, user_id)
    modules_by_subject = {**fresh, **from_path}

    scores = await sync_user_module_status(db, user_id)
    structure = await build_structure(db, modules_by_subject)
    personalized = cs.personalize_course_structure(structure, assigned_ids, scores)

    return {
        **template,
        "steps": cs.personalize_steps(template.get("steps"), personalized, assigned_ids, scores),
    }


async def save_personalized_path(
    db: aiosqlite.Connection,
    user_id: int,
    path_id: Optional[int],
    personalized: Dict[str, Any]
) -> Dict[str, Any]:
    """Store the user's single personalized copy. Returns the stored path payload."""
    existing = await path_store.get_user_path_row(db, user_id)
    distribution = cs.analyze_module_distribution(personalized)
    logger.info(f"Saving personalized path for user {user_id}: {distribution}")

    payload = {
        **((existing or {}).get("path") or {}),
        "personalized_data": personalized,
        "base_learning_path_id": path_id,
        "module_distribution": distribution,
    }
    if existing:
        await path_store.update_user_path(db, existing["id"], payload)
    else:
        await path_store.insert_user_path(db, user_id, payload)
    return payload


async def get_existing_personalized_path(
    db: aiosqlite.Connection,
    user_id: int,
    path_id: int
) -> Optional[Dict[str, Any]]:
    row = await path_store.get_user_path_row(db, user_id)
    payload = (row or {}).get("path") or {}
    personalized = payload.get("personalized_data")
    if not personalized:
        return None

    base_id = payload.get("base_learning_path_id")
    if base_id is not None and base_id != path_id:
        return None
    if cs.has_empty_modules(personalized):
        logger.info(f"Stored path for user {user_id} has empty modules, regenerating")
        return None
    return personalized


async def get_personalized_path(db: aiosqlite.Connection, user_id: int, path_id: int) -> Dict[str, Any]:
    existing = await get_existing_personalized_path(db, user_id, path_id)
    if existing:
        return existing

    personalized = await generate_personalized_path(db, user_id, path_id)
    await save_personalized_path(db, user_id, path_id, personalized)
    return personalized


async def refresh_user_learning_paths(
    db: aiosqlite.Connection,
    user_id: int,
    module_scores: Optional[Dict[int, int]] = None
) -> Dict[str, Any]:
    """Re-tag every stored personalized copy with the latest module scores.

    Modules surfaced by a stored copy are never dropped: the fresh assigned
    modules are merged with the ones embedded in the copy. Failures are
    logged and reported as success=False.
    """
    try:
        rows = await path_store.list_user_path_rows(db, user_id)

        if not rows:
            logger.info(f"No personalized path for user {user_id}, creating one")
            profile = await curriculum.get_user(db, user_id)
            recommended = await get_recommended_path(db, profile)
            personalized = await get_personalized_path(db, user_id, recommended["id"])
            return {
                "success": True,
                "updated_paths": [recommended["id"]],
                "created_path": {
                    "personalized_data": personalized,
                    "base_learning_path_id": recommended["id"],
                    "module_distribution": cs.analyze_module_distribution(personalized),
                },
            }

        fresh, assigned_ids = await fetch_modules_by_subject(db, user_id)
        if module_scores is None:
            scores = await sync_user_module_status(db, user_id)
        else:
            scores = dict(module_scores)
        for module_id in assigned_ids:
            scores.setdefault(module_id, 0)

        updated_paths = []
        for row in rows:
            raw = row.get("path") or {}
            existing = raw.get("personalized_data")
            if not existing and raw.get("steps"):
                existing = raw
            if not existing:
                continue

            merged = cs.merge_modules_by_subject(fresh, cs.extract_modules_by_subject(existing))
            if not merged:
                continue

            structure = await build_structure(db, merged)
            personalized = cs.personalize_course_structure(structure, assigned_ids, scores)
            updated = {
                **existing,
                "steps": cs.apply_course_structure_to_steps(existing.get("steps"), personalized),
            }

            next_path = {
                **raw,
                "personalized_data": updated,
                "module_distribution": cs.analyze_module_distribution(updated),
                "courses": personalized.get("courses") or [],
                "base_learning_path_id": raw.get("base_learning_path_id") or updated.get("id"),
            }
            await path_store.update_user_path(db, row["id"], next_path)
            updated_paths.append(row["id"])

        logger.info(f"Refreshed {len(updated_paths)} personalized paths for user {user_id}")
        return {"success": True, "updated_paths": updated_paths}

    except Exception as e:
        logger.error(f"Failed to refresh learning paths for user {user_id}: {e}")
        return {"success": False, "updated_paths": []}


async def get_user_learning_path(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """The stored personalized copy, else a fresh one from the recommended template."""
    try:
        row = await path_store.get_user_path_row(db, user_id)
        personalized = ((row or {}).get("path") or {}).get("personalized_data")
        if personalized:
            return personalized

        profile = await curriculum.get_user(db, user_id)
        recommended = await get_recommended_path(db, profile)
        return await get_personalized_path(db, user_id, recommended["id"])
    except Exception as e:
        logger.error(f"Failed to get learning path for user {user_id}: {e}")
        return None


# ══════════════════════════════════════════════════════════════════════════════
# ENROLMENT / PROGRESS
# ══════════════════════════════════════════════════════════════════════════════

async def enroll_user_in_path(db: aiosqlite.Connection, user_id: int, path_id: int) -> Dict[str, bool]:
    if not await path_store.get_active_path(db, path_id):
        raise NotFoundError("Learning path", path_id)
    if await path_store.get_enrollment(db, user_id, path_id):
        return {"success": True}
    await path_store.create_enrollment(db, user_id, path_id)
    logger.info(f"User {user_id} enrolled in learning path {path_id}")
    return {"success": True}


async def get_user_progress(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    """Enrolments with completed step IDs, plus the personalized path's template if not enrolled."""
    progress = await path_store.list_enrollments(db, user_id)

    row = await path_store.get_user_path_row(db, user_id)
    base_id = ((row or {}).get("path") or {}).get("base_learning_path_id")
    if base_id is not None and not any(p["learning_path_id"] == base_id for p in progress):
        progress.append({
            "learning_path_id": base_id,
            "progress_percentage": 0,
            "started_at": None,
            "completed_at": None,
            "learning_path_title": None,
        })

    for entry in progress:
        entry["completed_steps"] = await path_store.list_completed_step_ids(
            db, user_id, entry["learning_path_id"]
        )
    return progress


async def update_path_progress(db: aiosqlite.Connection, user_id: int, path_id: int) -> int:
    total = await path_store.count_path_steps(db, path_id)
    completed = len(await path_store.list_completed_step_ids(db, user_id, path_id))
    percentage = round_half_up(completed / total * 100) if total else 0
    completed_at = utcnow_iso() if percentage >= 100 else None
    await path_store.update_enrollment_progress(db, user_id, path_id, percentage, completed_at)
    return percentage


async def complete_step(
    db: aiosqlite.Connection,
    user_id: int,
    step_id: int,
    learning_path_id: int,
    time_spent_hours: float = 0,
    rating: Optional[int] = None,
    notes: Optional[str] = None
) -> Dict[str, Any]:
    await path_store.record_step_completion(
        db, user_id, step_id, learning_path_id, time_spent_hours, rating, notes
    )
    percentage = await update_path_progress(db, user_id, learning_path_id)
    return {"success": True, "progress_percentage": percentage}


# ══════════════════════════════════════════════════════════════════════════════
# MODULE STATUS VIEWS
# ══════════════════════════════════════════════════════════════════════════════

async def get_user_module_status(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    return await status_store.get_module_statuses(db, user_id)


async def get_subject_progress_overview(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    """Average module percentage per subject, best subject first."""
    statuses = await status_store.get_module_statuses(db, user_id)

    percentages: Dict[int, int] = {}
    for status in statuses:
        module_id = status.get("module_id")
        if module_id is None or module_id in percentages:
            continue
        try:
            value = float(status.get("correctness_percentage") or 0)
        except (TypeError, ValueError):
            value = 0
        percentages[module_id] = max(0, min(100, value))

    if not percentages:
        return []

    modules = await curriculum.get_modules_with_subjects(db, list(percentages))
    by_subject: Dict[int, Dict[str, Any]] = {}
    for module in modules:
        if module.get("subject_id") is None:
            continue
        entry = by_subject.setdefault(module["subject_id"], {
            "subject_id": module["subject_id"],
            "subject_title": module.get("subject_title") or module.get("title") or "Subject",
            "total": 0,
            "module_count": 0,
            "completed_modules": 0,
        })
        percentage = percentages[module["id"]]
        entry["total"] += percentage
        entry["module_count"] += 1
        if percentage >= 100:
            entry["completed_modules"] += 1

    overview = [
        {
            "subject_id": e["subject_id"],
            "subject_title": e["subject_title"],
            "module_count": e["module_count"],
            "average_percentage": round_half_up(e["total"] / e["module_count"]),
            "completed_modules": e["completed_modules"],
        }
        for e in by_subject.values()
        if e["module_count"] > 0
    ]
    overview.sort(key=lambda e: e["average_percentage"], reverse=True)
    return overview


def generate_recommendations(mandatory: int, optional: int, average_score: int) -> List[str]:
    recommendations = []
    if mandatory > optional:
        recommendations.append(
            "Focus on improving scores in mandatory modules to unlock more optional content"
        )
    if average_score < 70:
        recommendations.append(
            "Consider reviewing fundamental concepts before advancing to complex topics"
        )
    elif average_score >= 90:
        recommendations.append(
            "Excellent performance! You can focus on advanced topics or specialization areas"
        )
    if mandatory == 0:
        recommendations.append(
            "Complete assessments to unlock personalized learning recommendations"
        )
    return recommendations


async def get_learning_path_insights(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    statuses = await status_store.get_module_statuses(db, user_id)
    rows = await path_store.list_user_path_rows(db, user_id)

    mandatory = [s for s in statuses if s["status"] == "mandatory"]
    optional = [s for s in statuses if s["status"] == "optional"]
    average = round_half_up(sum(s["correctness_percentage"] for s in statuses) / len(statuses)) if statuses else 0

    return {
        "user_id": user_id,
        "total_modules_assessed": len(statuses),
        "mandatory_modules": len(mandatory),
        "optional_modules": len(optional),
        "average_score": average,
        "learning_paths_count": len(rows),
        "module_breakdown": {
            "mandatory": [{"id": s["module_id"], "score": s["correctness_percentage"]} for s in mandatory],
            "optional": [{"id": s["module_id"], "score": s["correctness_percentage"]} for s in optional],
        },
        "recommendations": generate_recommendations(len(mandatory), len(optional), average),
    }
