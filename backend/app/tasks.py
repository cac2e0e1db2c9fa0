from __future__ import annotations

import logging
import uuid

from app.core.db import SessionLocal
from app.pipelines.progress import run_pair
from app.pipelines.sweep import run_progress_sweep

logger = logging.getLogger(__name__)


def run_progress_sweep_job(user_id: str | None = None, course_id: str | None = None) -> dict:
    result = run_progress_sweep(
        user_id=uuid.UUID(user_id) if user_id else None,
        course_id=course_id,
    )
    return result.model_dump(mode="json")


def run_pair_job(user_id: str, course_id: str, with_plan: bool = False) -> dict:
    user_uuid = uuid.UUID(user_id)

    db = SessionLocal()
    try:
        result = run_pair(db, user_uuid, course_id, with_plan=with_plan)
        return result.model_dump(mode="json")
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("Progress run failed for user %s, course %s", user_id, course_id)
        raise
    finally:
        db.close()
