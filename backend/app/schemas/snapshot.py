import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.schemas.mastery import ProbabilityEntry, entries_from_raw


class ActivityStats(BaseModel):
    total_solved: int = 0
    pct_correct: float = 0.0
    hours_spent: float = 0.0
    current_streak_days: int = 0


class SnapshotResponse(BaseModel):
    id: int
    user_id: uuid.UUID
    course_id: str
    run_timestamp: datetime
    raw_data: list[ProbabilityEntry]
    computed_summary: list[dict[str, Any]]
    stats: ActivityStats | None = None
    expected_score: float | None = None

    @classmethod
    def from_snapshot(cls, snapshot) -> "SnapshotResponse":
        return cls(
            id=snapshot.id,
            user_id=snapshot.user_id,
            course_id=snapshot.course_id,
            run_timestamp=snapshot.run_timestamp,
            raw_data=entries_from_raw(snapshot.raw_data),
            computed_summary=list(snapshot.computed_summary or []),
            stats=ActivityStats(**snapshot.stats) if snapshot.stats else None,
            expected_score=snapshot.expected_score,
        )


class ProgressDiffResponse(BaseModel):
    user_id: uuid.UUID
    course_id: str
    reference: datetime | None = None
    entries: list[ProbabilityEntry] | None = None
