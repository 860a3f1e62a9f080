from fastapi import APIRouter, Depends, Request
from app.db.database import get_db
from app.models.assessment import LectureCompletionRequest, QuestionAttemptRequest
from app.routes.auth import get_current_user
from app.services import gamification_summary

router = APIRouter(prefix="/api/gamification", tags=["gamification"])


@router.post("/question-attempt")
async def question_attempt(body: QuestionAttemptRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await gamification_summary.record_question_attempt(
        db, user["id"], body.question_id, body.question_type, body.difficulty, body.is_correct
    )


@router.post("/lecture-complete")
async def lecture_complete(body: LectureCompletionRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await gamification_summary.record_lecture_completion(db, user["id"], body.lecture_id)


@router.get("/summary")
async def summary(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await gamification_summary.get_summary(db, user["id"])
