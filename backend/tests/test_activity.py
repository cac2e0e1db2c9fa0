import uuid

import pytest

from app.models.activity import AttemptEvent
from app.models.mastery import StudentMastery

USER_ID = uuid.UUID("88888888-8888-4888-8888-888888888888")


def _attempt_payload(**overrides):
    payload = {
        "user_id": str(USER_ID),
        "course_id": "1",
        "question_id": "oge-6-0001",
        "is_correct": True,
        "duration_seconds": 95.5,
        "problem_number_type": 6,
        "skills": [1, 2],
        "topics": ["1.1"],
    }
    payload.update(overrides)
    return payload


def test_record_attempt_updates_mastery(client, db_session):
    response = client.post("/api/v1/activity/attempts", json=_attempt_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["attempt_id"] > 0
    assert body["duration_answer"] == 95.5
    # skills 1, 2 + topic 1.1 + FIPI task 6
    assert body["mastery_updates"] == 4
    assert db_session.query(StudentMastery).filter_by(user_id=USER_ID).count() == 4


def test_record_ungraded_attempt_keeps_mastery(client, db_session):
    response = client.post("/api/v1/activity/attempts", json=_attempt_payload(is_correct=None))

    assert response.status_code == 201
    assert response.json()["mastery_updates"] == 0
    assert db_session.query(AttemptEvent).count() == 1
    assert db_session.query(StudentMastery).count() == 0


def test_repeated_attempts_accumulate(client, db_session):
    client.post("/api/v1/activity/attempts", json=_attempt_payload(skills=[], problem_number_type=None))
    client.post("/api/v1/activity/attempts", json=_attempt_payload(skills=[], problem_number_type=None))

    row = db_session.query(StudentMastery).filter_by(user_id=USER_ID, entity_id="1.1").one()
    assert row.alpha == pytest.approx(2.9)
    assert row.status == "in_progress"


def test_record_attempt_unknown_course(client):
    response = client.post("/api/v1/activity/attempts", json=_attempt_payload(course_id="99"))
    assert response.status_code == 404


def test_record_attempt_rejects_negative_duration(client):
    response = client.post("/api/v1/activity/attempts", json=_attempt_payload(duration_seconds=-1))
    assert response.status_code == 422
