from typing import Optional
from fastapi import APIRouter, Depends, Request
from app.db import curriculum
from app.db.database import get_db
from app.models.assessment import CompleteStepRequest, RecommendRequest, RefreshRequest
from app.routes.auth import get_current_user
from app.services import learning_path as lp

router = APIRouter(prefix="/api/learning-paths", tags=["learning-paths"])


@router.get("")
@router.get("/")
async def list_paths(request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await lp.get_all_paths(db)


@router.post("/recommend")
async def recommend_path(request: Request, body: Optional[RecommendRequest] = None, db=Depends(get_db)):
    """Recommend a template from the posted profile, or from the stored one."""
    user = await get_current_user(request, db)
    if body and (body.career_goals or body.focus_areas):
        profile = body.model_dump()
    else:
        profile = await curriculum.get_user(db, user["id"])
    return await lp.get_recommended_path(db, profile)


# ── User-scoped routes (declared before /{path_id}) ──────────────────

@router.get("/user/progress")
async def user_progress(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_user_progress(db, user["id"])


@router.patch("/user/progress/{step_id}/complete")
async def complete_step(step_id: int, body: CompleteStepRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.complete_step(
        db, user["id"], step_id, body.learning_path_id,
        body.time_spent_hours, body.rating, body.notes,
    )


@router.get("/user/module-status")
async def module_status(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_user_module_status(db, user["id"])


@router.get("/user/my-path")
async def my_path(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_user_learning_path(db, user["id"])


@router.post("/user/refresh")
async def refresh_paths(request: Request, body: Optional[RefreshRequest] = None, db=Depends(get_db)):
    user = await get_current_user(request, db)
    scores = body.module_scores if body else None
    return await lp.refresh_user_learning_paths(db, user["id"], scores)


@router.get("/user/insights")
async def insights(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_learning_path_insights(db, user["id"])


@router.get("/user/subject-progress")
async def subject_progress(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_subject_progress_overview(db, user["id"])


# ── Path-scoped routes ───────────────────────────────────────────────

@router.get("/{path_id}")
async def path_details(path_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await lp.get_path_details(db, path_id)


@router.get("/{path_id}/personalized")
async def personalized_path(path_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.get_personalized_path(db, user["id"], path_id)


@router.post("/{path_id}/enroll")
async def enroll(path_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lp.enroll_user_in_path(db, user["id"], path_id)
