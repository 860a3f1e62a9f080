import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.config import settings
from app.db.database import init_db, close_db
from app.errors import ConflictError, InvalidRequestError, NotFoundError, StoreError
from app.middleware.auth import AuthMiddleware

logger = logging.getLogger(__name__)

# CORS: use CORS_ORIGINS (comma-separated) or sensible defaults.
if settings.cors_origins:
    _allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
else:
    _allowed_origins = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Pathway Gate", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(AuthMiddleware)


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status or 500, content={"detail": f"{exc.operation} failed"})


# Import and register routes
from app.routes.auth import router as auth_router
from app.routes.assessment import router as assessment_router
from app.routes.learning_path import router as learning_path_router
from app.routes.subject_selection import router as subject_selection_router
from app.routes.student_assessment import router as student_assessment_router
from app.routes.gamification import router as gamification_router

app.include_router(auth_router)
app.include_router(assessment_router)
app.include_router(learning_path_router)
app.include_router(subject_selection_router)
app.include_router(student_assessment_router)
app.include_router(gamification_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
