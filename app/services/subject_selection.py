"""
subject_selection.py - Onboarding subject choice and the assessment fast-track

Provides:
- get_available_subjects(db, user_id) - Assigned courses with their subjects
- save_selected_subjects(db, user_id, subject_ids) - Save choice and open an assessment
- get_selected_subjects(db, user_id)
- skip_subject_selection(db, user_id, reason, preserve_selection) - Fast-track to a path
"""

import logging
from typing import Dict, Any, Iterable, List, Optional

import aiosqlite

from app.db import curriculum
from app.services import assessment_engine
from app.services import learning_path as lp
from app.services.best_effort import run_best_effort
from app.services.module_status import seed_mandatory_module_status

logger = logging.getLogger(__name__)

NO_QUESTIONS_REASON = "subjects_no_assessment_questions"


async def get_available_subjects(db: aiosqlite.Connection, user_id: int) -> Dict[str, List[Dict[str, Any]]]:
    course_ids = await curriculum.get_assigned_course_ids(db, user_id)
    if not course_ids:
        return {"courses": [], "subjects": []}

    courses = await curriculum.get_courses_by_ids(db, course_ids)
    subjects = await curriculum.get_subjects_for_courses(db, course_ids)
    return {
        "courses": [
            {**course, "subjects": [s for s in subjects if s["course_id"] == course["id"]]}
            for course in courses
        ],
        "subjects": subjects,
    }


def sanitize_subject_ids(values: Optional[Iterable[Any]]) -> List[int]:
    ids = []
    for value in values or []:
        if isinstance(value, bool):
            continue
        try:
            subject_id = int(str(value).strip())
        except (TypeError, ValueError):
            continue
        if subject_id > 0 and subject_id not in ids:
            ids.append(subject_id)
    return ids


async def save_selected_subjects(
    db: aiosqlite.Connection,
    user_id: int,
    subject_ids: Optional[Iterable[Any]]
) -> Dict[str, Any]:
    """Save the user's subjects and open their first assessment.

    When the chosen subjects have no assessment questions the user is
    fast-tracked straight to a learning path, keeping the selection.
    """
    sanitized = sanitize_subject_ids(subject_ids)
    selection = await curriculum.save_subject_selection(db, user_id, sanitized)

    await run_best_effort(
        "profile subject_selection_completed",
        curriculum.update_profile, db, user_id, subject_selection_completed=len(sanitized) > 0,
    )

    assessment = await assessment_engine.start(db, user_id)

    questions = await run_best_effort("question set preview", assessment_engine.get_question_set, db, user_id)
    question_count = len(questions) if questions is not None else None

    result = {
        **selection,
        "assessment_id": assessment["id"],
        "auto_fast_tracked": False,
        "question_count": question_count,
    }
    if question_count == 0:
        logger.info(f"No assessment questions for user {user_id}'s subjects, fast-tracking")
        result["auto_fast_tracked"] = True
        result["fast_track"] = await skip_subject_selection(
            db, user_id, NO_QUESTIONS_REASON, preserve_selection=True
        )
    return result


async def get_selected_subjects(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    return await curriculum.get_subject_selection(db, user_id)


async def skip_subject_selection(
    db: aiosqlite.Connection,
    user_id: int,
    reason: Optional[str] = None,
    preserve_selection: bool = False
) -> Dict[str, Any]:
    """Skip the assessment: every assigned module becomes mandatory at 0%."""
    await curriculum.save_subject_selection(db, user_id, None if preserve_selection else [])
    await curriculum.update_profile(
        db, user_id, onboarding_completed=True, subject_selection_completed=True
    )

    seeded = await run_best_effort(
        "mandatory module seed", seed_mandatory_module_status, db, user_id, default={"inserted": 0}
    )
    learning_path = await run_best_effort("learning path fetch", lp.get_user_learning_path, db, user_id)

    logger.info(f"User {user_id} skipped subject selection (reason: {reason})")
    return {
        "success": True,
        "skipped": True,
        "reason": reason,
        "modules_seeded": seeded["inserted"],
        "learning_path": learning_path,
    }
