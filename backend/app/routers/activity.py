import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.activity import AttemptEvent
from app.schemas.activity import AttemptCreate, AttemptResponse
from app.services.catalog_service import CatalogError, catalog_service
from app.services.mastery_service import mastery_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["activity"])


@router.post("/attempts", response_model=AttemptResponse, status_code=status.HTTP_201_CREATED)
def record_attempt(payload: AttemptCreate, db: Session = Depends(get_db)):
    """
    Record one attempt and fold it into the student's mastery posteriors.
    """
    try:
        catalog = catalog_service.get(payload.course_id)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    event = AttemptEvent(
        user_id=payload.user_id,
        course_id=payload.course_id,
        question_id=payload.question_id,
        is_correct=payload.is_correct,
        duration_answer=payload.duration_seconds,
        problem_number_type=payload.problem_number_type,
        skills=payload.skills,
        topics=payload.topics,
        created_at=payload.created_at or datetime.utcnow(),
    )
    try:
        db.add(event)
        db.flush()
        updates = mastery_service.apply_attempt(db, event, catalog)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Error recording attempt for user %s: %s", payload.user_id, e)
        raise HTTPException(status_code=503, detail="Database unavailable") from e

    db.refresh(event)
    response = AttemptResponse.model_validate(event)
    response.mastery_updates = updates
    return response
