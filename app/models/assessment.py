from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, Literal, Union

from app.services.gamification import DIFFICULTIES, QUESTION_TYPES


class ResponseItem(BaseModel):
    q_index: int
    question_id: Optional[int] = None
    answer: Any = None
    skipped: bool = False


class FinishRequest(BaseModel):
    responses: Optional[list[ResponseItem]] = None


class StudentFinishRequest(BaseModel):
    assessmentId: Optional[int] = None
    responses: Optional[list[ResponseItem]] = None


class EvaluateRequest(BaseModel):
    questionId: Optional[int] = None
    answer: Any = None
    skipped: bool = False


class SessionResponseItem(BaseModel):
    q_index: int
    question_id: Optional[int] = None
    answer_text: Optional[Union[str, int]] = None
    skipped: bool = False

    @field_validator("answer_text")
    @classmethod
    def stored_as_text(cls, v: Optional[Union[str, int]]) -> Optional[str]:
        # mcq runners send the option index
        return None if v is None else str(v)


class SaveSessionRequest(BaseModel):
    position: int = Field(ge=0)
    responses: list[SessionResponseItem] = []


class CompleteStepRequest(BaseModel):
    learning_path_id: int
    time_spent_hours: float = Field(default=0, ge=0)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None


class RecommendRequest(BaseModel):
    career_goals: list[str] = []
    focus_areas: list[str] = []


class RefreshRequest(BaseModel):
    module_scores: Optional[dict[int, int]] = None


class SubjectSelectionRequest(BaseModel):
    selected_subjects: list[Any] = []


class SkipSelectionRequest(BaseModel):
    reason: Optional[str] = None


class QuestionAttemptRequest(BaseModel):
    question_id: str
    question_type: Literal[QUESTION_TYPES] = "quiz"
    difficulty: str = "medium"
    is_correct: bool

    @field_validator("difficulty")
    @classmethod
    def known_difficulty(cls, v: str) -> str:
        # unknown difficulties score as medium
        return v if v in DIFFICULTIES else "medium"


class LectureCompletionRequest(BaseModel):
    lecture_id: str
