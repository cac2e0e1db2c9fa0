import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.activity import AttemptEvent
from app.models.mastery import StudentMastery
from app.schemas.mastery import (
    FipiTaskProbability,
    SkillProbability,
    TopicProbability,
    clamp_probability,
)
from app.services.catalog_service import CourseCatalog

logger = logging.getLogger(__name__)

PRIOR_ALPHA = 1.0
PRIOR_BETA = 1.0
# Weight kept by older evidence on every new attempt; recent attempts dominate.
FORGETTING_FACTOR = 0.9

MASTERED_THRESHOLD = 0.8
IN_PROGRESS_THRESHOLD = 0.2

EntityKey = tuple[str, str]


@dataclass
class BetaState:
    alpha: float = PRIOR_ALPHA
    beta: float = PRIOR_BETA
    updated_at: datetime | None = None

    @property
    def prob(self) -> float:
        total = self.alpha + self.beta
        return clamp_probability(self.alpha / total) if total > 0 else 0.0

    def observe(self, is_correct: bool, at: datetime | None = None) -> None:
        x = 1.0 if is_correct else 0.0
        self.alpha = PRIOR_ALPHA + FORGETTING_FACTOR * (self.alpha - PRIOR_ALPHA) + x
        self.beta = PRIOR_BETA + FORGETTING_FACTOR * (self.beta - PRIOR_BETA) + (1.0 - x)
        if at is not None:
            self.updated_at = at


def mastery_status(prob: float) -> str:
    if prob >= MASTERED_THRESHOLD:
        return "mastered"
    if prob >= IN_PROGRESS_THRESHOLD:
        return "in_progress"
    return "not_started"


def resolve_entities(event: AttemptEvent, catalog: CourseCatalog) -> list[EntityKey]:
    """
    Catalog entities touched by an attempt. References the catalog does not
    know are dropped.
    """
    keys: list[EntityKey] = []
    known_skills = catalog.skill_numbers()
    for raw_skill in event.skills or []:
        try:
            number = int(raw_skill)
        except (TypeError, ValueError):
            number = None
        if number in known_skills:
            keys.append(("skill", str(number)))
        else:
            logger.debug("Attempt %s: unknown skill %r dropped", event.question_id, raw_skill)

    for ref in event.topics or []:
        topic = catalog.resolve_topic(ref)
        if topic:
            keys.append(("topic", topic.code))
        else:
            logger.debug("Attempt %s: unknown topic %r dropped", event.question_id, ref)

    task = event.problem_number_type
    if task and 1 <= task <= catalog.fipi_task_count:
        keys.append(("fipi_task", str(task)))

    return list(dict.fromkeys(keys))


def rebuild_states(events: list[AttemptEvent], catalog: CourseCatalog) -> dict[EntityKey, BetaState]:
    """Replay graded attempts, oldest first, into fresh posteriors."""
    states: dict[EntityKey, BetaState] = {}
    graded = [e for e in events if e.is_correct is not None]
    for event in sorted(graded, key=lambda e: (e.created_at, e.attempt_id or 0)):
        for key in resolve_entities(event, catalog):
            states.setdefault(key, BetaState()).observe(bool(event.is_correct), event.created_at)
    return states


def probability_table(
    states: dict[EntityKey, BetaState],
    catalog: CourseCatalog,
) -> list[TopicProbability | SkillProbability | FipiTaskProbability]:
    """
    Flatten posteriors into a probability table.

    Topics come in curriculum order and skills by number, both only when
    there is evidence. Once any FIPI task has evidence, every task
    1..fipi_task_count is emitted in task order (0.0 without evidence) so
    that position i of the FIPI entries is task i+1. With no FIPI evidence
    at all there are no FIPI entries, and no expected score.
    """
    entries: list[TopicProbability | SkillProbability | FipiTaskProbability] = []
    for topic in catalog.topics:
        state = states.get(("topic", topic.code))
        if state is not None:
            entries.append(TopicProbability(topic=topic.full_name, prob=state.prob))

    skill_numbers = sorted(int(entity_id) for kind, entity_id in states if kind == "skill")
    for number in skill_numbers:
        entries.append(SkillProbability(skill=number, prob=states[("skill", str(number))].prob))

    if not any(kind == "fipi_task" for kind, _ in states):
        return entries
    for task in range(1, catalog.fipi_task_count + 1):
        state = states.get(("fipi_task", str(task)))
        entries.append(FipiTaskProbability(task=task, prob=state.prob if state else 0.0))
    return entries


class MasteryService:
    """Keeps the per-entity Beta posteriors in ``student_mastery`` up to date."""

    def load_states(
        self, db: Session, user_id: uuid.UUID, course_id: str
    ) -> dict[EntityKey, BetaState]:
        rows = (
            db.query(StudentMastery)
            .filter(StudentMastery.user_id == user_id, StudentMastery.course_id == course_id)
            .all()
        )
        return {
            (row.entity_type, row.entity_id): BetaState(
                alpha=float(row.alpha), beta=float(row.beta), updated_at=row.updated_at
            )
            for row in rows
        }

    def apply_attempt(self, db: Session, event: AttemptEvent, catalog: CourseCatalog) -> int:
        """
        Fold one attempt into the stored posteriors. Returns the number of
        entities updated. Ungraded attempts are ignored. Does not commit.
        """
        if event.is_correct is None:
            return 0

        now = datetime.utcnow()
        updated = 0
        for entity_type, entity_id in resolve_entities(event, catalog):
            row = (
                db.query(StudentMastery)
                .filter(
                    StudentMastery.user_id == event.user_id,
                    StudentMastery.course_id == event.course_id,
                    StudentMastery.entity_type == entity_type,
                    StudentMastery.entity_id == entity_id,
                )
                .first()
            )
            state = (
                BetaState(alpha=float(row.alpha), beta=float(row.beta))
                if row
                else BetaState()
            )
            state.observe(bool(event.is_correct))

            if row is None:
                row = StudentMastery(
                    user_id=event.user_id,
                    course_id=event.course_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                )
                db.add(row)
            row.alpha = state.alpha
            row.beta = state.beta
            row.status = mastery_status(state.prob)
            row.updated_at = now
            updated += 1

        db.flush()
        return updated

    def recalculate_from_attempts(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        catalog: CourseCatalog,
    ) -> dict[EntityKey, BetaState]:
        """Rebuild every posterior of a (user, course) pair from the event store."""
        events = (
            db.query(AttemptEvent)
            .filter(AttemptEvent.user_id == user_id, AttemptEvent.course_id == course_id)
            .all()
        )
        states = rebuild_states(events, catalog)
        now = datetime.utcnow()

        db.query(StudentMastery).filter(
            StudentMastery.user_id == user_id, StudentMastery.course_id == course_id
        ).delete(synchronize_session=False)
        for (entity_type, entity_id), state in states.items():
            db.add(
                StudentMastery(
                    user_id=user_id,
                    course_id=course_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    alpha=state.alpha,
                    beta=state.beta,
                    status=mastery_status(state.prob),
                    updated_at=now,
                )
            )
        db.commit()
        return states

    def last_update_at(self, db: Session, user_id: uuid.UUID, course_id: str) -> datetime | None:
        row = (
            db.query(StudentMastery.updated_at)
            .filter(StudentMastery.user_id == user_id, StudentMastery.course_id == course_id)
            .order_by(StudentMastery.updated_at.desc())
            .first()
        )
        return row[0] if row else None


class LocalProgressCalculator:
    """
    In-process progress calculation: reads the stored posteriors and
    flattens them into a probability table.
    """

    def __init__(self, mastery: MasteryService | None = None) -> None:
        self._mastery = mastery or mastery_service

    def compute(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        catalog: CourseCatalog,
    ) -> list[TopicProbability | SkillProbability | FipiTaskProbability]:
        states = self._mastery.load_states(db, user_id, course_id)
        return probability_table(states, catalog)


# Singleton instance
mastery_service = MasteryService()
