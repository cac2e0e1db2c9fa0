import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.models.types import JSONDocument


class MasterySnapshot(Base):
    """Point-in-time copy of a probability table. Rows are never updated."""

    __tablename__ = "mastery_snapshots"
    __table_args__ = (
        Index("idx_mastery_snapshots_pair_run", "user_id", "course_id", "run_timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[str] = mapped_column(String(10), nullable=False)
    run_timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    raw_data: Mapped[list[dict[str, Any]]] = mapped_column(JSONDocument, nullable=False)
    computed_summary: Mapped[list[dict[str, Any]]] = mapped_column(JSONDocument, nullable=False)
    stats: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    expected_score: Mapped[float | None] = mapped_column(Float, nullable=True)
