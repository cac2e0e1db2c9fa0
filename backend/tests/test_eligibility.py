import uuid
from datetime import datetime, timedelta
from unittest.mock import patch

from app.models.mastery import StudentMastery
from app.models.snapshot import MasterySnapshot
from app.services.eligibility_service import EligibilityService, should_recompute
from app.services.mastery_service import mastery_service

USER_ID = uuid.UUID("33333333-3333-4333-8333-333333333333")
NOW = datetime(2025, 3, 10, 12, 0)


def test_no_mastery_is_never_eligible():
    assert should_recompute(None, None, NOW) is False
    assert should_recompute(None, NOW - timedelta(days=1), NOW) is False


def test_first_snapshot_is_eligible():
    assert should_recompute(NOW - timedelta(minutes=1), None, NOW) is True


def test_new_evidence_after_cooldown():
    snapshot_time = NOW - timedelta(minutes=45)
    assert should_recompute(NOW - timedelta(minutes=5), snapshot_time, NOW) is True


def test_new_evidence_within_cooldown():
    snapshot_time = NOW - timedelta(minutes=10)
    assert should_recompute(NOW - timedelta(minutes=5), snapshot_time, NOW) is False


def test_cooldown_boundary_is_exclusive():
    snapshot_time = NOW - timedelta(minutes=30)
    assert should_recompute(NOW - timedelta(minutes=1), snapshot_time, NOW) is False


def test_no_new_evidence():
    snapshot_time = NOW - timedelta(hours=2)
    assert should_recompute(snapshot_time - timedelta(minutes=1), snapshot_time, NOW) is False


def _mastery(updated_at):
    return StudentMastery(
        user_id=USER_ID,
        course_id="1",
        entity_type="topic",
        entity_id="1.1",
        alpha=2.0,
        beta=1.0,
        status="in_progress",
        updated_at=updated_at,
    )


def _snapshot(run_timestamp):
    return MasterySnapshot(
        user_id=USER_ID,
        course_id="1",
        run_timestamp=run_timestamp,
        raw_data=[],
        computed_summary=[{"general_progress": 0}],
    )


def test_check_reads_latest_times(db_session):
    db_session.add(_mastery(NOW - timedelta(minutes=5)))
    db_session.add(_snapshot(NOW - timedelta(hours=3)))
    db_session.add(_snapshot(NOW - timedelta(hours=1)))
    db_session.commit()

    check = EligibilityService().check(db_session, USER_ID, "1", now=NOW)

    assert check.mastery_time == NOW - timedelta(minutes=5)
    assert check.snapshot_time == NOW - timedelta(hours=1)
    assert check.eligible is True


def test_check_without_any_data(db_session):
    check = EligibilityService().check(db_session, USER_ID, "1", now=NOW)
    assert check.eligible is False
    assert check.mastery_time is None


def test_other_course_does_not_count(db_session):
    db_session.add(_mastery(NOW - timedelta(minutes=5)))
    db_session.commit()

    assert EligibilityService().is_eligible(db_session, USER_ID, "2", now=NOW) is False
    assert EligibilityService().is_eligible(db_session, USER_ID, "1", now=NOW) is True


def test_check_uses_mastery_service_update_time(db_session):
    db_session.add(_snapshot(NOW - timedelta(hours=1)))
    db_session.commit()

    with patch.object(mastery_service, "last_update_at", return_value=NOW - timedelta(minutes=2)) as last:
        check = EligibilityService().check(db_session, USER_ID, "1", now=NOW)

    last.assert_called_once_with(db_session, USER_ID, "1")
    assert check.mastery_time == NOW - timedelta(minutes=2)
    assert check.eligible is True
