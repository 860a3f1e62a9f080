from fastapi import APIRouter, Depends, HTTPException, Request
from app.db.database import get_db
from app.models.assessment import (
    EvaluateRequest,
    FinishRequest,
    SaveSessionRequest,
    StudentFinishRequest,
)
from app.routes.auth import get_current_user
from app.services import assessment_engine

router = APIRouter(prefix="/api/assessments", tags=["assessments"])


@router.post("/start")
async def start_assessment(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    assessment = await assessment_engine.start(db, user["id"])
    return {
        "assessment_id": assessment["id"],
        "questions": await assessment_engine.get_question_set(db, user["id"]),
        "lockedModules": await assessment_engine.get_locked_modules(db, user["id"]),
    }


@router.post("/start-with-check")
async def start_with_session_check(request: Request, db=Depends(get_db)):
    """Resume the in-progress session if there is one, else open a new run."""
    user = await get_current_user(request, db)
    return await assessment_engine.start_with_session_check(db, user["id"])


@router.post("/evaluate")
async def evaluate_response(body: EvaluateRequest, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    if not body.questionId:
        raise HTTPException(status_code=400, detail="Question ID is required")
    return await assessment_engine.evaluate_response(db, body.questionId, body.answer, body.skipped)


@router.post("/finish")
async def finish_from_body(body: StudentFinishRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    if not body.assessmentId:
        raise HTTPException(status_code=400, detail="Assessment ID is required")
    if body.responses is None:
        raise HTTPException(status_code=400, detail="Responses array is required")
    return await assessment_engine.finish(
        db, user["id"], body.assessmentId, [r.model_dump() for r in body.responses]
    )


@router.post("/{assessment_id}/finish")
async def finish_assessment(assessment_id: int, body: FinishRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    if body.responses is None:
        raise HTTPException(status_code=400, detail="Responses array is required")
    return await assessment_engine.finish(
        db, user["id"], assessment_id, [r.model_dump() for r in body.responses]
    )


@router.get("/latest")
async def latest_assessment(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_engine.latest(db, user["id"])


@router.get("/current")
async def current_session(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_engine.get_current_session(db, user["id"])


@router.get("/locked-modules")
async def locked_modules(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return {"lockedModules": await assessment_engine.get_locked_modules(db, user["id"])}


@router.post("/sessions/{session_id}/save")
async def save_session(session_id: int, body: SaveSessionRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_engine.save_session_progress(
        db, user["id"], session_id, body.position, [r.model_dump() for r in body.responses]
    )


@router.post("/sessions/{session_id}/resume")
async def resume_session(session_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_engine.resume_session(db, user["id"], session_id)


@router.post("/sessions/{session_id}/abandon")
async def abandon_session(session_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_engine.abandon_session(db, user["id"], session_id)
