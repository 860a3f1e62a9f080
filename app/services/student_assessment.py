"""
student_assessment.py - Student-facing wrapper around the assessment engine

Keeps the response envelopes ({success, ...}) the student app expects.
"""

import logging
from typing import Dict, Any, List, Optional

import aiosqlite

from app.db import assessments as assessment_store
from app.errors import InvalidRequestError, NotFoundError
from app.services import assessment_engine

logger = logging.getLogger(__name__)

DEFAULT_ASSESSMENT = {
    "id": "default-assessment",
    "title": "Initial Assessment",
    "category_id": "general",
    "description": "Initial assessment to determine your skill level",
}


async def get_available_assessments(db: aiosqlite.Connection, user_id: int) -> List[Dict[str, Any]]:
    attempts = await assessment_store.count_completed_assessments(db, user_id)
    return [{
        **DEFAULT_ASSESSMENT,
        "student_info": {"total_attempts": attempts, "can_retake": True},
    }]


async def start_assessment(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    assessment = await assessment_engine.start(db, user_id)
    questions = await assessment_engine.get_question_set(db, user_id)
    return {"success": True, "assessment": assessment, "questions": questions}


async def evaluate(
    db: aiosqlite.Connection,
    question_id: Optional[int],
    answer: Any,
    skipped: bool = False
) -> Dict[str, Any]:
    if not question_id:
        raise InvalidRequestError("Question ID is required")
    evaluation = await assessment_engine.evaluate_response(db, question_id, answer, skipped)
    return {"success": True, "evaluation": evaluation}


async def finish(
    db: aiosqlite.Connection,
    user_id: int,
    assessment_id: Optional[int],
    responses: Optional[List[Dict[str, Any]]]
) -> Dict[str, Any]:
    if not assessment_id:
        raise InvalidRequestError("Assessment ID is required")
    if responses is None or not isinstance(responses, list):
        raise InvalidRequestError("Responses array is required")

    result = await assessment_engine.finish(db, user_id, assessment_id, responses)
    return {"success": True, "result": result, "redirectTo": "/learning-path"}


async def get_status(db: aiosqlite.Connection, user_id: int) -> Dict[str, Any]:
    assessment = await assessment_engine.latest(db, user_id)
    if not assessment:
        raise NotFoundError("Assessment")
    return {"success": True, "assessment": assessment}
