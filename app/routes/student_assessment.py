from fastapi import APIRouter, Depends, Request
from app.db.database import get_db
from app.models.assessment import EvaluateRequest, StudentFinishRequest
from app.routes.auth import get_current_user
from app.services import student_assessment

router = APIRouter(prefix="/api/student-assessments", tags=["student-assessments"])


@router.get("/available")
async def available(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await student_assessment.get_available_assessments(db, user["id"])


@router.post("/start")
async def start(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await student_assessment.start_assessment(db, user["id"])


@router.post("/evaluate")
async def evaluate(body: EvaluateRequest, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await student_assessment.evaluate(db, body.questionId, body.answer, body.skipped)


@router.post("/finish")
async def finish(body: StudentFinishRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    responses = None if body.responses is None else [r.model_dump() for r in body.responses]
    return await student_assessment.finish(db, user["id"], body.assessmentId, responses)


@router.get("/status")
async def status(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await student_assessment.get_status(db, user["id"])
