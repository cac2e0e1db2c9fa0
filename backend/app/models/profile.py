import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.models.types import JSONDocument


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    courses: Mapped[list[str] | None] = mapped_column(JSONDocument, nullable=True)
    goal_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hours_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    school_grade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
