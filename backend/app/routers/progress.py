import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.queue import enqueue_pair_run, enqueue_progress_sweep, is_async_queue_enabled
from app.pipelines.progress import latest_narrative, run_pair
from app.pipelines.sweep import run_progress_sweep
from app.schemas.mastery import MasteryTable, entries_from_raw
from app.schemas.progress import (
    EligibilityResponse,
    ExpectedScoreResponse,
    PairRunResponse,
    StudyPlanResponse,
    SweepRequest,
    SweepResponse,
)
from app.schemas.snapshot import ProgressDiffResponse, SnapshotResponse
from app.services.catalog_service import CatalogError, CourseCatalog, catalog_service
from app.services.eligibility_service import eligibility_service
from app.services.mastery_service import LocalProgressCalculator
from app.services.plan_service import build_study_plan
from app.services.score_service import estimate_expected_score
from app.services.snapshot_service import SnapshotPersistenceError, snapshot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["progress"])


def _get_catalog(course_id: str) -> CourseCatalog:
    try:
        return catalog_service.get(course_id)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/{user_id}/{course_id}/mastery", response_model=MasteryTable)
def get_mastery(user_id: uuid.UUID, course_id: str, db: Session = Depends(get_db)):
    """Current probability table, computed from the stored posteriors."""
    catalog = _get_catalog(course_id)
    entries = LocalProgressCalculator().compute(db, user_id, course_id, catalog)
    return MasteryTable(user_id=user_id, course_id=course_id, entries=entries)


@router.get("/{user_id}/{course_id}/expected-score", response_model=ExpectedScoreResponse)
def get_expected_score(user_id: uuid.UUID, course_id: str, db: Session = Depends(get_db)):
    catalog = _get_catalog(course_id)
    entries = LocalProgressCalculator().compute(db, user_id, course_id, catalog)
    return ExpectedScoreResponse(
        user_id=user_id,
        course_id=course_id,
        expected_score=estimate_expected_score(entries, course_id),
    )


@router.get("/{user_id}/{course_id}/plan", response_model=StudyPlanResponse)
def get_study_plan(user_id: uuid.UUID, course_id: str, db: Session = Depends(get_db)):
    """Study plan from the latest snapshot (live mastery when there is none)."""
    catalog = _get_catalog(course_id)
    snapshot = snapshot_service.latest_snapshot(db, user_id, course_id)
    if snapshot is not None:
        entries = entries_from_raw(snapshot.raw_data)
    else:
        entries = LocalProgressCalculator().compute(db, user_id, course_id, catalog)
    return StudyPlanResponse(
        user_id=user_id, course_id=course_id, plan=build_study_plan(entries, catalog)
    )


@router.get("/{user_id}/{course_id}/snapshots/latest", response_model=SnapshotResponse)
def get_latest_snapshot(
    user_id: uuid.UUID,
    course_id: str,
    before: datetime | None = None,
    db: Session = Depends(get_db),
):
    snapshot = snapshot_service.latest_snapshot(db, user_id, course_id, before=before)
    if not snapshot:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return SnapshotResponse.from_snapshot(snapshot)


@router.get("/{user_id}/{course_id}/diff", response_model=ProgressDiffResponse)
def get_progress_diff(
    user_id: uuid.UUID,
    course_id: str,
    reference: datetime | None = None,
    db: Session = Depends(get_db),
):
    """
    Change between the snapshot preceding ``reference`` and the latest one.
    ``reference`` defaults to the time of the last stored plan. ``entries`` is
    null when either side is missing.
    """
    if reference is None:
        previous = latest_narrative(db, user_id, course_id)
        reference = previous.created_at if previous else None
    return ProgressDiffResponse(
        user_id=user_id,
        course_id=course_id,
        reference=reference,
        entries=snapshot_service.progress_diff(db, user_id, course_id, reference),
    )


@router.get("/{user_id}/{course_id}/eligibility", response_model=EligibilityResponse)
def get_eligibility(user_id: uuid.UUID, course_id: str, db: Session = Depends(get_db)):
    check = eligibility_service.check(db, user_id, course_id)
    return EligibilityResponse(
        user_id=user_id,
        course_id=course_id,
        mastery_time=check.mastery_time,
        snapshot_time=check.snapshot_time,
        eligible=check.eligible,
    )


@router.post("/{user_id}/{course_id}/run", response_model=PairRunResponse)
def run_progress(
    user_id: uuid.UUID,
    course_id: str,
    with_plan: bool = False,
    db: Session = Depends(get_db),
):
    """Run the pipeline for one pair, bypassing the eligibility gate."""
    _get_catalog(course_id)

    if is_async_queue_enabled():
        try:
            job_id = enqueue_pair_run(user_id=user_id, course_id=course_id, with_plan=with_plan)
        except Exception as e:  # noqa: BLE001
            raise HTTPException(status_code=503, detail=f"Queue unavailable: {e}") from e
        return PairRunResponse(user_id=user_id, course_id=course_id, status="queued", job_id=job_id)

    try:
        return run_pair(db, user_id, course_id, with_plan=with_plan)
    except SnapshotPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Snapshot not stored: {e}") from e


@router.post("/sweep", response_model=SweepResponse)
def sweep_progress(payload: SweepRequest | None = None):
    """Process every eligible (profile, course) pair."""
    payload = payload or SweepRequest()

    if is_async_queue_enabled():
        try:
            job_id = enqueue_progress_sweep(user_id=payload.user_id, course_id=payload.course_id)
        except Exception as e:  # noqa: BLE001
            raise HTTPException(status_code=503, detail=f"Queue unavailable: {e}") from e
        return SweepResponse(status="queued", job_id=job_id)

    return run_progress_sweep(user_id=payload.user_id, course_id=payload.course_id)
