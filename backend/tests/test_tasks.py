import uuid
from datetime import datetime

import pytest

from app.models.mastery import StudentMastery
from app.models.profile import StudentProfile
from app.tasks import run_pair_job, run_progress_sweep_job

USER_ID = uuid.UUID("aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa")


@pytest.fixture
def enrolled(db_session):
    db_session.add(StudentProfile(user_id=USER_ID, courses=["2"]))
    db_session.add(
        StudentMastery(
            user_id=USER_ID,
            course_id="2",
            entity_type="fipi_task",
            entity_id="3",
            alpha=3.0,
            beta=1.0,
            status="in_progress",
            updated_at=datetime.utcnow(),
        )
    )
    db_session.commit()
    return db_session


def test_run_pair_job(enrolled):
    result = run_pair_job(str(USER_ID), "2")

    assert result["status"] == "success"
    assert result["user_id"] == str(USER_ID)
    assert result["expected_score"] > 0


def test_run_pair_job_unknown_course_raises(enrolled):
    with pytest.raises(ValueError):
        run_pair_job(str(USER_ID), "99")


def test_run_progress_sweep_job(enrolled):
    result = run_progress_sweep_job(str(USER_ID), None)

    assert result["status"] == "completed"
    assert result["processed_pairs"] == 1
