import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class StudentMastery(Base):
    """Running Beta posterior for one topic, skill or FIPI task of a student."""

    __tablename__ = "student_mastery"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "course_id",
            "entity_type",
            "entity_id",
            name="student_mastery_entity_key",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    course_id: Mapped[str] = mapped_column(String(10), nullable=False)
    entity_type: Mapped[str] = mapped_column(
        Enum("topic", "skill", "fipi_task", name="mastery_entity_type"), nullable=False
    )
    entity_id: Mapped[str] = mapped_column(String(50), nullable=False)
    alpha: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    beta: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("not_started", "in_progress", "mastered", name="mastery_progress_status"),
        default="not_started",
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )

    @property
    def prob(self) -> float:
        total = self.alpha + self.beta
        return self.alpha / total if total > 0 else 0.0
