import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.models.types import JSONDocument


class AttemptEvent(Base):
    """One student action on one question. Append-only."""

    __tablename__ = "student_activity"
    __table_args__ = (
        Index("idx_student_activity_user_course", "user_id", "course_id"),
        Index("idx_student_activity_created", "created_at"),
    )

    attempt_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[str] = mapped_column(String(10), nullable=False)
    question_id: Mapped[str] = mapped_column(String(100), nullable=False)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    duration_answer: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    problem_number_type: Mapped[int | None] = mapped_column(Integer, nullable=True)
    skills: Mapped[list[int] | None] = mapped_column(JSONDocument, nullable=True)
    topics: Mapped[list[str] | None] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def duration_seconds(self) -> float:
        return float(self.duration_answer or 0.0)
