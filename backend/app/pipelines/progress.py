"""
Per-(user, course) progress pipeline.

Snapshot stage: mastery table -> stats -> expected score -> summary -> insert.
Plan stage: latest snapshot -> study plan -> progress diff -> narrative -> insert.

Every derivation step is best-effort: a failure is logged, recorded on the
result and replaced by a neutral value so that the snapshot (or plan) row
is still written. Only persistence failures propagate.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.narrative import PlanNarrative
from app.models.profile import StudentProfile
from app.models.snapshot import MasterySnapshot
from app.schemas.mastery import SkillProbability, entries_from_raw, entries_to_raw
from app.schemas.plan import StudyPlan
from app.schemas.progress import PairRunResponse, PlanRunResponse
from app.schemas.snapshot import ActivityStats
from app.services.catalog_service import CourseCatalog, catalog_service
from app.services.llm_service import LLMService, NarrativeRequest, days_until
from app.services.mastery_service import LocalProgressCalculator
from app.services.plan_service import build_study_plan
from app.services.score_service import estimate_score, fipi_probabilities
from app.services.snapshot_service import (
    compute_activity_stats,
    compute_summary,
    snapshot_service,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProgressCalculator(Protocol):
    def compute(
        self, db: Session, user_id: uuid.UUID, course_id: str, catalog: CourseCatalog
    ) -> list: ...


@dataclass
class StageResult(Generic[T]):
    value: T
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_step(name: str, fallback: T, fn: Callable[[], T]) -> StageResult[T]:
    """Run one derivation step, substituting ``fallback`` if it raises."""
    try:
        return StageResult(fn())
    except Exception as e:  # noqa: BLE001
        logger.exception("%s failed", name)
        return StageResult(fallback, error=f"{name}: {e}")


@dataclass
class SnapshotRun:
    snapshot: MasterySnapshot
    errors: list[str] = field(default_factory=list)


@dataclass
class PlanRun:
    narrative: PlanNarrative
    plan: StudyPlan
    progress_diff: list | None
    errors: list[str] = field(default_factory=list)


def run_snapshot_stage(
    db: Session,
    user_id: uuid.UUID,
    course_id: str,
    *,
    calculator: ProgressCalculator | None = None,
    now: datetime | None = None,
) -> SnapshotRun:
    """Compute and store a fresh mastery snapshot for one pair."""
    logger.info("Snapshot stage for user %s, course %s", user_id, course_id)
    catalog = catalog_service.get(course_id)
    calculator = calculator or LocalProgressCalculator()
    errors: list[str] = []

    entries = run_step(
        "progress calculation",
        [],
        lambda: calculator.compute(db, user_id, course_id, catalog),
    )
    stats = run_step(
        "activity stats",
        ActivityStats(),
        lambda: compute_activity_stats(snapshot_service.attempts_for_stats(db, user_id, course_id)),
    )
    expected_score = run_step(
        "expected score",
        None,
        lambda: estimate_score(fipi_probabilities(entries.value), course_id),
    )
    summary = run_step(
        "summary",
        [{"general_progress": 0}],
        lambda: compute_summary(entries.value),
    )
    for result in (entries, stats, expected_score, summary):
        if result.error:
            errors.append(result.error)

    # Persistence errors propagate to the caller.
    snapshot = snapshot_service.insert_snapshot(
        db,
        user_id=user_id,
        course_id=course_id,
        entries=entries.value,
        computed_summary=summary.value,
        stats=stats.value,
        expected_score=expected_score.value,
        run_timestamp=now,
    )
    return SnapshotRun(snapshot=snapshot, errors=errors)


def latest_narrative(db: Session, user_id: uuid.UUID, course_id: str) -> PlanNarrative | None:
    return (
        db.query(PlanNarrative)
        .filter(PlanNarrative.user_id == user_id, PlanNarrative.course_id == course_id)
        .order_by(PlanNarrative.created_at.desc(), PlanNarrative.id.desc())
        .first()
    )


def _progress_for_prompt(entries) -> list[dict[str, Any]]:
    return entries_to_raw([e for e in entries if not isinstance(e, SkillProbability)])


def run_plan_stage(
    db: Session,
    user_id: uuid.UUID,
    course_id: str,
    *,
    llm: LLMService | None = None,
    calculator: ProgressCalculator | None = None,
    now: datetime | None = None,
) -> PlanRun:
    """
    Build the study plan from the latest snapshot, diff progress against the
    previous plan and store the plan with its (optional) narrative.
    """
    logger.info("Plan stage for user %s, course %s", user_id, course_id)
    now = now or datetime.utcnow()
    catalog = catalog_service.get(course_id)
    errors: list[str] = []

    snapshot = snapshot_service.latest_snapshot(db, user_id, course_id)
    if snapshot is not None:
        entries = entries_from_raw(snapshot.raw_data)
    else:
        calculator = calculator or LocalProgressCalculator()
        computed = run_step(
            "progress calculation",
            [],
            lambda: calculator.compute(db, user_id, course_id, catalog),
        )
        entries = computed.value
        if computed.error:
            errors.append(computed.error)

    plan = run_step("study plan", StudyPlan(), lambda: build_study_plan(entries, catalog))

    previous = latest_narrative(db, user_id, course_id)
    reference = previous.created_at if previous else None
    progress_diff = run_step(
        "progress diff",
        None,
        lambda: snapshot_service.progress_diff(db, user_id, course_id, reference),
    )
    for result in (plan, progress_diff):
        if result.error:
            errors.append(result.error)

    profile = db.get(StudentProfile, user_id)
    diff_raw = entries_to_raw(progress_diff.value) if progress_diff.value is not None else None
    request = NarrativeRequest(
        course_id=course_id,
        plan=plan.value,
        progress=_progress_for_prompt(entries),
        progress_diff=diff_raw,
        previous_plan=previous.plan if previous else None,
        goal_score=profile.goal_score if profile else None,
        hours_per_week=profile.hours_per_week if profile else None,
        school_grade=profile.school_grade if profile else None,
        days_to_exam=days_until(settings.EXAM_DATE, now),
        word_limit=settings.NARRATIVE_WORD_LIMIT,
    )
    llm = llm or LLMService()
    narrative_text = llm.try_generate_study_narrative(request)
    if narrative_text is None:
        errors.append("narrative: generation failed or not configured")

    row = PlanNarrative(
        user_id=user_id,
        course_id=course_id,
        plan=plan.value.model_dump(),
        progress_diff=diff_raw,
        narrative=narrative_text,
        seen=False,
        created_at=now,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        raise

    logger.info("Stored plan %s for user %s, course %s", row.id, user_id, course_id)
    return PlanRun(narrative=row, plan=plan.value, progress_diff=progress_diff.value, errors=errors)


def run_pair(
    db: Session,
    user_id: uuid.UUID,
    course_id: str,
    *,
    with_plan: bool = False,
    calculator: ProgressCalculator | None = None,
    llm: LLMService | None = None,
) -> PairRunResponse:
    """Snapshot stage, optionally followed by the plan stage."""
    snapshot_run = run_snapshot_stage(db, user_id, course_id, calculator=calculator)
    errors = list(snapshot_run.errors)

    plan_response = None
    if with_plan:
        plan_run = run_plan_stage(db, user_id, course_id, llm=llm, calculator=calculator)
        errors.extend(plan_run.errors)
        plan_response = PlanRunResponse(
            narrative_id=plan_run.narrative.id,
            plan=plan_run.plan,
            progress_diff=plan_run.progress_diff,
            narrative=plan_run.narrative.narrative,
        )

    return PairRunResponse(
        user_id=user_id,
        course_id=course_id,
        status="success",
        snapshot_id=snapshot_run.snapshot.id,
        expected_score=snapshot_run.snapshot.expected_score,
        plan=plan_response,
        errors=errors,
    )
