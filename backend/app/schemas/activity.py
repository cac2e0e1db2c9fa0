import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AttemptCreate(BaseModel):
    user_id: uuid.UUID
    course_id: str
    question_id: str
    is_correct: bool | None = None
    duration_seconds: float = Field(default=0.0, ge=0.0)
    problem_number_type: int | None = None
    skills: list[int] = []
    topics: list[str] = []
    created_at: datetime | None = None


class AttemptResponse(BaseModel):
    attempt_id: int
    user_id: uuid.UUID
    course_id: str
    question_id: str
    is_correct: bool | None
    duration_answer: float
    problem_number_type: int | None
    skills: list[int] | None
    topics: list[str] | None
    created_at: datetime
    mastery_updates: int = 0

    model_config = ConfigDict(from_attributes=True)
