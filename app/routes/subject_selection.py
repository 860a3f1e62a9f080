from typing import Optional
from fastapi import APIRouter, Depends, Request
from app.db.database import get_db
from app.models.assessment import SkipSelectionRequest, SubjectSelectionRequest
from app.routes.auth import get_current_user
from app.services import subject_selection

router = APIRouter(prefix="/api/subject-selection", tags=["subject-selection"])


@router.get("/available")
async def available_subjects(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await subject_selection.get_available_subjects(db, user["id"])


@router.post("/select")
async def select_subjects(body: SubjectSelectionRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await subject_selection.save_selected_subjects(db, user["id"], body.selected_subjects)


@router.get("/selected")
async def selected_subjects(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await subject_selection.get_selected_subjects(db, user["id"])


@router.post("/skip")
async def skip_selection(request: Request, body: Optional[SkipSelectionRequest] = None, db=Depends(get_db)):
    """Fast-track: skip subjects and the assessment, go straight to a learning path."""
    user = await get_current_user(request, db)
    reason = body.reason if body else None
    return await subject_selection.skip_subject_selection(db, user["id"], reason)
