from pydantic import BaseModel


class StudyPlan(BaseModel):
    """What to study next. Rebuilt on every run."""

    topics_to_study: list[str] = []
    high_importance_skills: list[int] = []
    fipi_tasks_for_drilling: list[int] = []
    skills_to_reinforce: list[int] = []
