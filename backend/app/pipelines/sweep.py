import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import SessionLocal
from app.models.profile import StudentProfile
from app.pipelines.progress import ProgressCalculator, run_pair
from app.schemas.progress import SweepPairResult, SweepResponse
from app.services.eligibility_service import eligibility_service
from app.services.llm_service import LLMService

logger = logging.getLogger(__name__)


def _profile_courses(profile: StudentProfile) -> list[str]:
    """Course ids enrolled by a profile, restricted to the supported ones."""
    supported = set(settings.SUPPORTED_COURSES)
    courses = []
    for course in profile.courses or []:
        course_id = str(course)
        if course_id in supported and course_id not in courses:
            courses.append(course_id)
    return courses


def run_progress_sweep(
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    user_id: uuid.UUID | None = None,
    course_id: str | None = None,
    with_plan: bool | None = None,
    delay_seconds: float | None = None,
    calculator: ProgressCalculator | None = None,
    llm: LLMService | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SweepResponse:
    """
    Walk every (profile, course) pair, run the progress pipeline for the
    eligible ones and report per-pair outcomes. A failing pair is recorded
    and skipped; the sweep itself only fails if profiles cannot be listed.
    """
    with_plan = settings.SWEEP_GENERATE_NARRATIVE if with_plan is None else with_plan
    delay = settings.SWEEP_PAIR_DELAY_SECONDS if delay_seconds is None else delay_seconds
    now = now or datetime.utcnow()

    db = session_factory()
    try:
        query = db.query(StudentProfile).filter(StudentProfile.courses.is_not(None))
        if user_id is not None:
            query = query.filter(StudentProfile.user_id == user_id)
        profiles = query.all()
        pairs = [
            (profile.user_id, course)
            for profile in profiles
            for course in _profile_courses(profile)
            if course_id is None or course == str(course_id)
        ]
    finally:
        db.close()
    logger.info("Progress sweep: %s profiles, %s pairs", len(profiles), len(pairs))

    response = SweepResponse(status="completed", total_profiles=len(profiles))
    for pair_user_id, pair_course_id in pairs:
        db = session_factory()
        try:
            if not eligibility_service.is_eligible(db, pair_user_id, pair_course_id, now=now):
                continue
            response.eligible_pairs += 1

            try:
                run_pair(
                    db,
                    pair_user_id,
                    pair_course_id,
                    with_plan=with_plan,
                    calculator=calculator,
                    llm=llm,
                )
            except Exception as e:  # noqa: BLE001
                db.rollback()
                logger.exception(
                    "Progress run failed for user %s, course %s", pair_user_id, pair_course_id
                )
                response.results.append(
                    SweepPairResult(
                        user_id=pair_user_id,
                        course_id=pair_course_id,
                        status="error",
                        error=str(e),
                    )
                )
                continue
        finally:
            db.close()

        response.processed_pairs += 1
        response.results.append(
            SweepPairResult(user_id=pair_user_id, course_id=pair_course_id, status="success")
        )
        if delay > 0:
            sleep(delay)

    logger.info(
        "Progress sweep done: %s eligible, %s processed",
        response.eligible_pairs,
        response.processed_pairs,
    )
    return response
