import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.snapshot import MasterySnapshot
from app.services.mastery_service import mastery_service

logger = logging.getLogger(__name__)


def should_recompute(
    mastery_time: datetime | None,
    snapshot_time: datetime | None,
    now: datetime,
    cooldown: timedelta = timedelta(minutes=30),
) -> bool:
    """
    Debounce for snapshot runs: recompute only when mastery changed after the
    last snapshot and the cooldown since that snapshot has elapsed.
    """
    if mastery_time is None:
        return False
    if snapshot_time is None:
        return True
    has_new_evidence = mastery_time > snapshot_time
    cooldown_elapsed = now > snapshot_time + cooldown
    return has_new_evidence and cooldown_elapsed


@dataclass
class EligibilityCheck:
    mastery_time: datetime | None
    snapshot_time: datetime | None
    eligible: bool


class EligibilityService:
    def check(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        now: datetime | None = None,
    ) -> EligibilityCheck:
        now = now or datetime.utcnow()
        try:
            mastery_time = mastery_service.last_update_at(db, user_id, course_id)
            snapshot_time = (
                db.query(func.max(MasterySnapshot.run_timestamp))
                .filter(
                    MasterySnapshot.user_id == user_id,
                    MasterySnapshot.course_id == course_id,
                )
                .scalar()
            )
        except SQLAlchemyError:
            logger.exception("Error checking eligibility for user %s, course %s", user_id, course_id)
            return EligibilityCheck(mastery_time=None, snapshot_time=None, eligible=False)

        eligible = should_recompute(
            mastery_time,
            snapshot_time,
            now,
            cooldown=timedelta(minutes=settings.SNAPSHOT_COOLDOWN_MINUTES),
        )
        logger.info(
            "User %s, course %s: mastery=%s snapshot=%s eligible=%s",
            user_id,
            course_id,
            mastery_time,
            snapshot_time,
            eligible,
        )
        return EligibilityCheck(mastery_time=mastery_time, snapshot_time=snapshot_time, eligible=eligible)

    def is_eligible(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        now: datetime | None = None,
    ) -> bool:
        return self.check(db, user_id, course_id, now=now).eligible


# Singleton instance
eligibility_service = EligibilityService()
