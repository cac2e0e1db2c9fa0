import logging

from app.schemas.mastery import FipiTaskProbability, SkillProbability, TopicProbability
from app.schemas.plan import StudyPlan
from app.services.catalog_service import CourseCatalog

logger = logging.getLogger(__name__)

STUDY_TOPIC_THRESHOLD = 0.2
MAX_STUDY_TOPICS = 2
HIGH_IMPORTANCE_MAX = 2
REINFORCE_IMPORTANCE_MAX = 3
# Minimum skill mastery required per importance tier.
REINFORCE_THRESHOLDS: dict[int, float] = {0: 0.7, 1: 0.6, 2: 0.5, 3: 0.2}


class MasteryLookup:
    """Probability table split by entry kind."""

    def __init__(self, entries) -> None:
        self.topics: dict[str, float] = {}
        self.skills: dict[int, float] = {}
        self.fipi_tasks: dict[int, float] = {}
        for entry in entries:
            if isinstance(entry, TopicProbability):
                self.topics[entry.topic] = entry.prob
            elif isinstance(entry, SkillProbability):
                self.skills[entry.skill] = entry.prob
            elif isinstance(entry, FipiTaskProbability):
                self.fipi_tasks[entry.task] = entry.prob

    def topic(self, catalog: CourseCatalog, code: str) -> float:
        return self.topics.get(catalog.topic_key(code)) or 0.0

    def skill(self, number: int) -> float:
        return self.skills.get(number) or 0.0


def select_study_topics(catalog: CourseCatalog, mastery: MasteryLookup) -> list[str]:
    """First topics under the threshold in curriculum order, at most two."""
    selected: list[str] = []
    for code in catalog.ordered_topic_codes:
        if mastery.topic(catalog, code) < STUDY_TOPIC_THRESHOLD:
            selected.append(code)
            if len(selected) >= MAX_STUDY_TOPICS:
                break
    return selected


def select_high_importance_skills(catalog: CourseCatalog, topic_codes: list[str]) -> list[int]:
    skills: list[int] = []
    for code in topic_codes:
        for skill in catalog.skills_for_topic(code):
            if skill.importance <= HIGH_IMPORTANCE_MAX:
                skills.append(skill.number)
    return skills


def select_fipi_tasks_for_drilling(catalog: CourseCatalog, mastery: MasteryLookup) -> list[int]:
    """Tasks whose prerequisite topics are mastered by a strict majority."""
    tasks: list[int] = []
    for task in sorted(catalog.fipi_task_topics):
        topic_codes = catalog.fipi_task_topics[task]
        total = len(topic_codes)
        mastered = sum(
            1 for code in topic_codes if mastery.topic(catalog, code) >= STUDY_TOPIC_THRESHOLD
        )
        if mastered > total / 2:
            tasks.append(task)
    return tasks


def select_skills_to_reinforce(catalog: CourseCatalog, mastery: MasteryLookup) -> list[int]:
    skills: list[int] = []
    for code in catalog.ordered_topic_codes:
        if mastery.topic(catalog, code) < STUDY_TOPIC_THRESHOLD:
            continue
        for skill in catalog.skills_for_topic(code):
            if skill.importance > REINFORCE_IMPORTANCE_MAX:
                continue
            if mastery.skill(skill.number) < REINFORCE_THRESHOLDS[skill.importance]:
                skills.append(skill.number)
    return skills


def build_study_plan(entries, catalog: CourseCatalog) -> StudyPlan:
    mastery = MasteryLookup(entries)
    topics = select_study_topics(catalog, mastery)
    plan = StudyPlan(
        topics_to_study=topics,
        high_importance_skills=select_high_importance_skills(catalog, topics),
        fipi_tasks_for_drilling=select_fipi_tasks_for_drilling(catalog, mastery),
        skills_to_reinforce=select_skills_to_reinforce(catalog, mastery),
    )
    logger.debug("Study plan for course %s: %s", catalog.course_id, plan.model_dump())
    return plan
