"""
assessment_engine.py - Adaptive assessment runner with resumable sessions

Session lifecycle: no session → in_progress → completed | abandoned.

Provides:
- get_question_set(db, user_id) - Runner questions after subject and lock filters
- get_locked_modules(db, user_id) - Modules with too many wrong answers
- start / start_with_session_check - Open (or resume) an assessment run
- save_session_progress / resume_session / abandon_session / get_current_session
- evaluate_response(db, question_id, answer, skipped) - Score without saving
- finish(db, user_id, assessment_id, responses) - Write the ledger and re-personalize
- latest(db, user_id)
"""

import logging
from typing import Dict, Any, List, Optional

import aiosqlite
import httpx

from app.config import settings
from app.db import assessments as assessment_store
from app.db import curriculum
from app.db import learning_paths as path_store
from app.db import questions as question_store
from app.db import sessions as session_store
from app.db.database import utcnow_iso
from app.errors import ConflictError, NotFoundError
from app.services import learning_path as lp
from app.services.assessment_scorer import sanitize_question_type, score_response
from app.services.best_effort import run_best_effort
from app.services.gamification import round_half_up
from app.services.media_urls import MediaUrlResolver, build_storage_client
from app.services.module_status import sync_user_module_status

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# QUESTION SET
# ══════════════════════════════════════════════════════════════════════════════

async def get_locked_modules(db: aiosqlite.Connection, user_id: int) -> List[int]:
    counts = await assessment_store.get_incorrect_counts_by_module(db, user_id)
    return sorted(m for m, n in counts.items() if n >= settings.module_lock_mistakes)


async def _load_runner_questions(
    db: aiosqlite.Connection,
    user_id: int,
    client: httpx.AsyncClient
) -> List[Dict[str, Any]]:
    rows = await question_store.get_active_questions(db)

    supported = []
    for row in rows:
        qtype = sanitize_question_type(row.get("question_type"))
        if qtype is None:
            logger.warning(f"Dropping question {row['id']} with unsupported type '{row.get('question_type')}'")
            continue
        supported.append((row, qtype))

    selected = await curriculum.get_selected_subject_ids(db, user_id)
    if selected:
        supported = [
            (row, qtype) for row, qtype in supported
            if row.get("subject_id") is None or row["subject_id"] in selected
        ]

    locked = set(await get_locked_modules(db, user_id))
    available = [(row, qtype) for row, qtype in supported if row.get("module_id") not in locked]

    options = await question_store.get_options_for_questions(
        db, [row["id"] for row, qtype in available if qtype == "mcq"]
    )
    resolver = MediaUrlResolver(client)

    questions = []
    for row, qtype in available:
        question = {
            "id": row["id"],
            "type": qtype,
            "prompt": row.get("question_text") or "",
            "imageUrl": await resolver.resolve(row.get("question_image_url")),
            "rawType": row.get("question_type"),
            "points": row.get("points_value") or 1,
            "timeLimit": row.get("time_limit_seconds"),
            "moduleId": row.get("module_id"),
            "subjectId": row.get("subject_id"),
        }
        if qtype == "mcq":
            question["options"] = [o["option_text"] for o in options.get(row["id"], [])]
        questions.append(question)
    return questions


async def get_question_set(
    db: aiosqlite.Connection,
    user_id: int,
    client: Optional[httpx.AsyncClient] = None
) -> List[Dict[str, Any]]:
    """Questions the user should see, in bank order.

    Filters to the user's selected subjects (questions without a subject are
    kept) and hides every module the user is locked out of.
    """
    if client is not None:
        return await _load_runner_questions(db, user_id, client)
    async with build_storage_client() as own_client:
        return await _load_runner_questions(db, user_id, own_client)


# ══════════════════════════════════════════════════════════════════════════════
# SESSIONS
# ══════════════════════════════════════════════════════════════════════════════

async def start(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    assessment = await assessment_store.create_assessment(db, user_id)
    logger.info(f"Started assessment {assessment['id']} for user {user_id}")
    return assessment


async def _owned_session(db: aiosqlite.Connection, user_id: int, session_id: int) -> Dict[str, Any]:
    session = await session_store.get_session(db, session_id)
    if not session or session["user_id"] != user_id:
        raise NotFoundError("Session", session_id)
    return session


def _responses_by_question(responses: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {
        str(r["question_id"]): {"answer": r["answer_text"], "skipped": r["skipped"]}
        for r in responses
        if r.get("question_id") is not None
    }


async def start_with_session_check(
    db: aiosqlite.Connection,
    user_id: int,
    client: Optional[httpx.AsyncClient] = None
) -> Dict[str, Any]:
    """Resume the user's in-progress session, or open a new assessment and session."""
    session = await session_store.get_current_session(db, user_id)

    if session:
        responses = await session_store.get_session_responses(db, session["id"])
        logger.info(f"Resuming session {session['id']} for user {user_id} at {session['current_position']}")
        assessment_id = session["assessment_id"]
        session_payload = {
            "session_id": session["id"],
            "current_position": session["current_position"],
            "responses": _responses_by_question(responses),
        }
    else:
        assessment = await start(db, user_id)
        session = await session_store.create_session(db, user_id, assessment["id"])
        assessment_id = assessment["id"]
        session_payload = {
            "session_id": session["id"],
            "current_position": 0,
            "responses": {},
        }

    return {
        "assessment_id": assessment_id,
        "questions": await get_question_set(db, user_id, client),
        "lockedModules": await get_locked_modules(db, user_id),
        "session": session_payload,
    }


async def save_session_progress(
    db: aiosqlite.Connection,
    user_id: int,
    session_id: int,
    position: int,
    responses: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Record the runner position and upsert scratch answers by q_index."""
    await _owned_session(db, user_id, session_id)
    await session_store.update_session_position(db, session_id, position)
    saved = 0
    if responses:
        saved = await session_store.upsert_session_responses(db, session_id, responses)
    return {"success": True, "session_id": session_id, "current_position": position, "saved": saved}


async def resume_session(db: aiosqlite.Connection, user_id: int, session_id: int) -> Dict[str, Any]:
    session = await _owned_session(db, user_id, session_id)
    await session_store.touch_session(db, session_id)
    return {
        "session": await session_store.get_session(db, session_id) or session,
        "responses": await session_store.get_session_responses(db, session_id),
    }


async def abandon_session(db: aiosqlite.Connection, user_id: int, session_id: int) -> Dict[str, Any]:
    await _owned_session(db, user_id, session_id)
    await session_store.set_session_status(db, session_id, session_store.SESSION_ABANDONED)
    logger.info(f"Session {session_id} abandoned by user {user_id}")
    return {"success": True}


async def get_current_session(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    session = await session_store.get_current_session(db, user_id)
    if not session:
        return {"session": None, "responses": []}
    return {
        "session": session,
        "responses": await session_store.get_session_responses(db, session["id"]),
    }


# ══════════════════════════════════════════════════════════════════════════════
# SCORING / FINISH
# ══════════════════════════════════════════════════════════════════════════════

async def evaluate_response(
    db: aiosqlite.Connection,
    question_id: int,
    answer: Any,
    skipped: bool = False
) -> Dict[str, Any]:
    question = await question_store.get_question(db, question_id)
    if not question:
        raise NotFoundError("Question", question_id)

    options = await question_store.get_options_for_questions(db, [question_id])
    specs = await question_store.get_text_answers_for_questions(db, [question_id])
    result = score_response(question, options.get(question_id), specs.get(question_id), answer, skipped)
    return {
        "correct": result["correct"],
        "moduleId": result["module_id"],
        "subjectId": result["subject_id"],
    }


async def finish(
    db: aiosqlite.Connection,
    user_id: int,
    assessment_id: int,
    responses: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Score a submission, write the ledger and re-personalize the learning path.

    Each response is {q_index, question_id, answer, skipped}. Scoring walks
    responses in q_index order; once a module collects enough wrong answers
    (counting earlier assessments) the rest of its responses are stored as
    skipped.
    """
    assessment = await assessment_store.get_assessment(db, assessment_id)
    if not assessment or assessment["user_id"] != user_id:
        raise NotFoundError("Assessment", assessment_id)
    if assessment.get("completed_at"):
        raise ConflictError(f"Assessment {assessment_id} is already completed")

    ordered = sorted(responses, key=lambda r: r.get("q_index") or 0)
    question_ids = list(dict.fromkeys(r["question_id"] for r in ordered if r.get("question_id") is not None))
    questions = {q["id"]: q for q in await question_store.get_questions_by_ids(db, question_ids)}
    options = await question_store.get_options_for_questions(db, question_ids)
    specs = await question_store.get_text_answers_for_questions(db, question_ids)

    # mistakes from earlier assessments carry over, so already-locked modules stay locked
    history = await assessment_store.get_incorrect_counts_by_module(db, user_id)
    module_state: Dict[int, Dict[str, Any]] = {
        module_id: {"incorrect": n, "locked": n >= settings.module_lock_mistakes}
        for module_id, n in history.items()
    }
    correct_count = counted = skipped_count = 0
    ledger = []

    for response in ordered:
        question_id = response.get("question_id")
        result = score_response(
            questions.get(question_id),
            options.get(question_id),
            specs.get(question_id),
            response.get("answer"),
            bool(response.get("skipped")),
        )
        module_id = result["module_id"]
        skipped = bool(response.get("skipped"))
        correct = result["correct"]
        answer_text = result["answer_text"]

        state = module_state.get(module_id) if module_id else None
        if state and state["locked"]:
            skipped, correct, answer_text = True, False, None

        if skipped:
            skipped_count += 1
        else:
            counted += 1
            if correct:
                correct_count += 1

        if module_id:
            state = state or {"incorrect": 0, "locked": False}
            if not skipped and not correct:
                state["incorrect"] += 1
                if state["incorrect"] >= settings.module_lock_mistakes:
                    state["locked"] = True
            module_state[module_id] = state

        ledger.append({
            "assessment_id": assessment_id,
            "q_index": response.get("q_index"),
            "question_id": question_id,
            "user_id": user_id,
            "module_id": module_id,
            "answer_text": None if skipped else answer_text,
            "correct": correct,
            "skipped": skipped,
        })

    score = round_half_up(correct_count / counted * 100) if counted else 0
    passed = score >= settings.passing_score

    await assessment_store.insert_responses(db, ledger)
    updated = await assessment_store.complete_assessment(db, assessment_id, score, passed)
    await session_store.complete_sessions_for_assessment(db, assessment_id)
    logger.info(
        f"Assessment {assessment_id} finished by user {user_id}: "
        f"score={score} passed={passed} ({correct_count}/{counted}, {skipped_count} skipped)"
    )

    learning_path = await _after_finish(db, user_id)

    return {
        "score": score,
        "passed": passed,
        "total": counted,
        "correct": correct_count,
        "skipped": skipped_count,
        "assessment": updated,
        "learningPath": learning_path,
    }


async def _after_finish(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    """Profile stamp, module status and path refresh. None of these can fail finish()."""
    await run_best_effort(
        "profile assessment_completed_at",
        curriculum.update_profile, db, user_id, assessment_completed_at=utcnow_iso(),
    )
    module_scores = await run_best_effort("module status sync", sync_user_module_status, db, user_id)

    learning_path = None
    existing = await run_best_effort("existing path lookup", path_store.get_user_path_row, db, user_id)
    if existing is None and module_scores is not None:
        profile = await run_best_effort("profile lookup", curriculum.get_user, db, user_id)
        recommended = await run_best_effort("recommended path", lp.get_recommended_path, db, profile)
        if recommended:
            learning_path = await run_best_effort(
                "personalized path generation",
                lp.get_personalized_path, db, user_id, recommended["id"],
            )

    await run_best_effort("learning path refresh", lp.refresh_user_learning_paths, db, user_id, module_scores)

    if learning_path is None:
        learning_path = await run_best_effort("learning path fetch", lp.get_user_learning_path, db, user_id)
    return learning_path


async def latest(db: aiosqlite.Connection, user_id: int) -> Optional[Dict[str, Any]]:
    return await assessment_store.get_latest_assessment(db, user_id)
