import jwt
import aiosqlite
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Request
from app.db import curriculum
from app.db.database import get_db
from app.config import settings

router = APIRouter(prefix="/api/auth", tags=["auth"])

JWT_SECRET = settings.jwt_secret
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = 72


def create_token(user_id: int, email: str, role: str = "student") -> str:
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(request: Request, db: aiosqlite.Connection) -> dict:
    """Extract and validate the current user from the JWT token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty token")

    payload = decode_token(token)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    cursor = await db.execute(
        "SELECT id, name, email, role FROM users WHERE id = ?",
        (user_id,),
    )
    user = await cursor.fetchone()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"] or "student",
    }


@router.get("/me")
async def me(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    profile = await curriculum.get_user(db, user["id"])
    return {
        "id": profile["id"],
        "name": profile["name"],
        "email": profile["email"],
        "role": profile["role"] or "student",
        "career_goals": profile["career_goals"],
        "focus_areas": profile["focus_areas"],
        "onboarding_completed": profile["onboarding_completed"],
        "subject_selection_completed": profile["subject_selection_completed"],
        "assessment_completed_at": profile.get("assessment_completed_at"),
    }
