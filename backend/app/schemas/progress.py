import uuid
from datetime import datetime

from pydantic import BaseModel

from app.schemas.mastery import ProbabilityEntry
from app.schemas.plan import StudyPlan


class ExpectedScoreResponse(BaseModel):
    user_id: uuid.UUID
    course_id: str
    expected_score: float | None


class StudyPlanResponse(BaseModel):
    user_id: uuid.UUID
    course_id: str
    plan: StudyPlan


class EligibilityResponse(BaseModel):
    user_id: uuid.UUID
    course_id: str
    mastery_time: datetime | None
    snapshot_time: datetime | None
    eligible: bool


class PlanRunResponse(BaseModel):
    narrative_id: int
    plan: StudyPlan
    progress_diff: list[ProbabilityEntry] | None = None
    narrative: str | None = None


class PairRunResponse(BaseModel):
    user_id: uuid.UUID
    course_id: str
    status: str  # success, error, queued
    snapshot_id: int | None = None
    expected_score: float | None = None
    plan: PlanRunResponse | None = None
    errors: list[str] = []
    job_id: str | None = None


class SweepRequest(BaseModel):
    user_id: uuid.UUID | None = None
    course_id: str | None = None


class SweepPairResult(BaseModel):
    user_id: uuid.UUID
    course_id: str
    status: str  # success, error
    error: str | None = None


class SweepResponse(BaseModel):
    status: str  # completed, queued
    total_profiles: int = 0
    eligible_pairs: int = 0
    processed_pairs: int = 0
    results: list[SweepPairResult] = []
    job_id: str | None = None
