import logging
import uuid
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity import AttemptEvent
from app.models.snapshot import MasterySnapshot
from app.schemas.mastery import TopicProbability, entries_from_raw, entries_to_raw
from app.schemas.snapshot import ActivityStats

logger = logging.getLogger(__name__)

MAX_DIFF_ENTRIES = 30


class SnapshotPersistenceError(RuntimeError):
    """The snapshot row could not be written."""


def current_streak_days(days: Iterable[date]) -> int:
    """Consecutive calendar days ending at the latest active day."""
    unique_days = sorted(set(days))
    if not unique_days:
        return 0
    last = unique_days[-1]
    streak = 1
    for previous in reversed(unique_days[:-1]):
        gap = (last - previous).days
        if gap == streak:
            streak += 1
        elif gap > streak:
            break
    return streak


def compute_activity_stats(events: Iterable[AttemptEvent]) -> ActivityStats:
    graded = [e for e in events if e.is_correct is not None]
    if not graded:
        return ActivityStats()

    total = len(graded)
    correct = sum(1 for e in graded if e.is_correct is True)
    total_seconds = sum(e.duration_seconds for e in graded)
    return ActivityStats(
        total_solved=total,
        pct_correct=round(correct / total * 100, 2),
        hours_spent=round(total_seconds / 3600, 2),
        current_streak_days=current_streak_days(e.created_at.date() for e in graded),
    )


def compute_summary(entries) -> list[dict[str, Any]]:
    """``[{"general_progress": mean topic prob}, {topic, prob}, ...]``"""
    topics = [entry for entry in entries if isinstance(entry, TopicProbability)]
    probs = [entry.prob for entry in topics]
    general_progress = sum(probs) / len(probs) if probs else 0
    summary: list[dict[str, Any]] = [{"general_progress": general_progress}]
    summary.extend({"topic": entry.topic, "prob": entry.prob} for entry in topics)
    return summary


def diff_snapshots(previous_entries, recent_entries) -> list:
    """
    Per-entry change from ``previous_entries`` to ``recent_entries``, largest
    absolute change first, at most MAX_DIFF_ENTRIES.

    Entries new in ``recent`` keep their own prob; entries that disappeared
    are reported as a drop to zero.
    """
    previous_by_key = {entry.identity(): entry for entry in previous_entries}
    recent_keys = set()
    diff = []

    for entry in recent_entries:
        key = entry.identity()
        recent_keys.add(key)
        before = previous_by_key.get(key)
        delta = entry.prob - before.prob if before is not None else entry.prob
        diff.append(entry.model_copy(update={"prob": delta}))

    for entry in previous_entries:
        if entry.identity() not in recent_keys:
            diff.append(entry.model_copy(update={"prob": -entry.prob}))

    diff.sort(key=lambda entry: abs(entry.prob), reverse=True)
    return diff[:MAX_DIFF_ENTRIES]


class SnapshotService:
    """Append-only store of mastery snapshots."""

    def insert_snapshot(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        course_id: str,
        entries,
        computed_summary: list[dict[str, Any]],
        stats: ActivityStats,
        expected_score: float | None,
        run_timestamp: datetime | None = None,
    ) -> MasterySnapshot:
        snapshot = MasterySnapshot(
            user_id=user_id,
            course_id=course_id,
            run_timestamp=run_timestamp or datetime.utcnow(),
            raw_data=entries_to_raw(entries),
            computed_summary=computed_summary,
            stats=stats.model_dump(),
            expected_score=expected_score,
        )
        try:
            db.add(snapshot)
            db.commit()
            db.refresh(snapshot)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Error storing snapshot for user %s, course %s: %s", user_id, course_id, exc)
            raise SnapshotPersistenceError(str(exc)) from exc

        logger.info("Stored snapshot %s for user %s, course %s", snapshot.id, user_id, course_id)
        return snapshot

    def latest_snapshot(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        before: datetime | None = None,
    ) -> MasterySnapshot | None:
        query = db.query(MasterySnapshot).filter(
            MasterySnapshot.user_id == user_id,
            MasterySnapshot.course_id == course_id,
        )
        if before is not None:
            query = query.filter(MasterySnapshot.run_timestamp < before)
        return query.order_by(
            MasterySnapshot.run_timestamp.desc(), MasterySnapshot.id.desc()
        ).first()

    def progress_diff(
        self,
        db: Session,
        user_id: uuid.UUID,
        course_id: str,
        reference: datetime | None,
    ) -> list | None:
        """
        Diff between the most recent snapshot before ``reference`` and the most
        recent snapshot overall. None when either is missing.
        """
        if reference is None:
            return None
        recent = self.latest_snapshot(db, user_id, course_id)
        previous = self.latest_snapshot(db, user_id, course_id, before=reference)
        if recent is None or previous is None:
            return None
        return diff_snapshots(entries_from_raw(previous.raw_data), entries_from_raw(recent.raw_data))

    def attempts_for_stats(
        self, db: Session, user_id: uuid.UUID, course_id: str
    ) -> list[AttemptEvent]:
        return (
            db.query(AttemptEvent)
            .filter(
                AttemptEvent.user_id == user_id,
                AttemptEvent.course_id == course_id,
                AttemptEvent.is_correct.is_not(None),
            )
            .all()
        )


# Singleton instance
snapshot_service = SnapshotService()
