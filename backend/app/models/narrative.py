import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.models.types import JSONDocument


class PlanNarrative(Base):
    """A generated study plan with its narrative. The latest row's
    created_at is the reference point for progress diffs."""

    __tablename__ = "study_plan_narratives"
    __table_args__ = (
        Index("idx_study_plan_narratives_pair_created", "user_id", "course_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[str] = mapped_column(String(10), nullable=False)
    plan: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    progress_diff: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONDocument, nullable=True)
    narrative: Mapped[str | None] = mapped_column(Text, nullable=True)
    seen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
