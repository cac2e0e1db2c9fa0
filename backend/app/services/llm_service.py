import json
import logging
import math
from datetime import datetime

import openai
from pydantic import BaseModel

from app.core.config import settings
from app.schemas.plan import StudyPlan

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a math tutor preparing a student for a state exam."


class NarrativeRequest(BaseModel):
    course_id: str
    plan: StudyPlan
    progress: list[dict] = []
    progress_diff: list[dict] | None = None
    previous_plan: dict | None = None
    goal_score: int | None = None
    hours_per_week: int | None = None
    school_grade: int | None = None
    days_to_exam: int | None = None
    word_limit: int = 500


def days_until(exam_date: str, today: datetime | None = None) -> int:
    """Whole days left until ``exam_date`` (ISO date), rounded up."""
    today = today or datetime.utcnow()
    target = datetime.fromisoformat(exam_date)
    return math.ceil((target - today).total_seconds() / 86400)


def build_narrative_prompt(request: NarrativeRequest) -> str:
    def _json(value) -> str:
        return json.dumps(value, ensure_ascii=False, indent=2)

    previous = _json(request.previous_plan) if request.previous_plan else "Нет предыдущих заданий"
    diff = _json(request.progress_diff) if request.progress_diff else "Нет данных о прогрессе"
    return f"""
Твой ответ должен иметь длину до {request.word_limit} слов.

### Задание студента
{_json(request.plan.model_dump())}

### Прошлое задание
{previous}

### Изменения в прогрессе студента с прошлого раза
{diff}

### Данные студента
Цель: {request.goal_score} баллов
Часов в неделю: {request.hours_per_week}
Школьная оценка: {request.school_grade}
Дней до экзамена: {request.days_to_exam}

### Прогресс студента
{_json(request.progress)}
"""


class LLMService:
    """Client for the OpenAI-compatible endpoint that writes plan narratives."""

    def __init__(self, client: openai.OpenAI | None = None):
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = openai.OpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.LLM_BASE_URL,
            )
        elif self.client is None:
            logger.warning("OPENAI_API_KEY not set. Plan narratives will be skipped.")

    def generate_study_narrative(self, request: NarrativeRequest) -> str:
        """
        Free-text guidance for a study plan. Raises on any client failure;
        callers decide how to degrade.
        """
        if not self.client:
            raise ValueError("LLM Client not configured (missing OPENAI_API_KEY)")

        response = self.client.chat.completions.create(
            model=settings.LLM_MODEL_NAME,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_narrative_prompt(request)},
            ],
            temperature=settings.LLM_TEMPERATURE,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ValueError("Empty narrative returned by the LLM")
        return content.strip()

    def try_generate_study_narrative(self, request: NarrativeRequest) -> str | None:
        """Best-effort variant: logs and returns None on failure."""
        try:
            return self.generate_study_narrative(request)
        except Exception:  # noqa: BLE001
            logger.exception("Narrative generation failed for course %s", request.course_id)
            return None
