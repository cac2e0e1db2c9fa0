import uuid
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models.mastery import StudentMastery
from app.models.narrative import PlanNarrative
from app.models.profile import StudentProfile
from app.models.snapshot import MasterySnapshot
from app.pipelines.progress import run_pair, run_plan_stage, run_snapshot_stage, run_step
from app.schemas.mastery import FipiTaskProbability, SkillProbability, TopicProbability
from app.services.llm_service import LLMService
from app.services.snapshot_service import SnapshotPersistenceError

USER_ID = uuid.UUID("44444444-4444-4444-8444-444444444444")
T0 = datetime(2025, 3, 1, 9, 0)


class StaticCalculator:
    def __init__(self, entries):
        self.entries = entries

    def compute(self, db, user_id, course_id, catalog):
        return list(self.entries)


class FailingCalculator:
    def compute(self, db, user_id, course_id, catalog):
        raise RuntimeError("progress service down")


def _entries(topic_prob=0.5, task_prob=0.5):
    return [
        TopicProbability(topic="1.1 Натуральные и целые числа", prob=topic_prob),
        SkillProbability(skill=1, prob=0.4),
        *[FipiTaskProbability(task=n, prob=task_prob) for n in range(1, 26)],
    ]


def _llm(text="Study fractions this week."):
    llm = MagicMock(spec=LLMService)
    llm.try_generate_study_narrative.return_value = text
    return llm


def test_run_step_substitutes_fallback():
    def boom():
        raise ValueError("bad")

    result = run_step("thing", 0, boom)

    assert result.value == 0
    assert not result.ok
    assert "thing" in result.error


def test_snapshot_stage_stores_everything(db_session):
    run = run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries()), now=T0)

    snapshot = db_session.get(MasterySnapshot, run.snapshot.id)
    assert run.errors == []
    assert snapshot.run_timestamp == T0
    assert len(snapshot.raw_data) == 27
    assert snapshot.computed_summary[0] == {"general_progress": 0.5}
    assert snapshot.expected_score is not None
    assert snapshot.stats["total_solved"] == 0


def test_snapshot_stage_survives_calculator_failure(db_session):
    run = run_snapshot_stage(db_session, USER_ID, "1", calculator=FailingCalculator(), now=T0)

    assert run.snapshot.raw_data == []
    assert run.snapshot.expected_score is None
    assert run.snapshot.computed_summary == [{"general_progress": 0}]
    assert any("progress calculation" in error for error in run.errors)


def test_snapshot_stage_survives_score_failure(db_session, monkeypatch):
    def broken_score(probs, course_id):
        raise RuntimeError("no weights")

    monkeypatch.setattr("app.pipelines.progress.estimate_score", broken_score)

    run = run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries()), now=T0)

    snapshot = db_session.get(MasterySnapshot, run.snapshot.id)
    assert snapshot.expected_score is None
    assert len(snapshot.raw_data) == 27
    assert snapshot.stats["total_solved"] == 0
    assert snapshot.computed_summary[0] == {"general_progress": 0.5}
    assert any("expected score" in error for error in run.errors)


def test_snapshot_without_fipi_evidence_has_no_score(db_session):
    db_session.add(
        StudentMastery(
            user_id=USER_ID,
            course_id="1",
            entity_type="topic",
            entity_id="1.1",
            alpha=2.0,
            beta=1.0,
            status="in_progress",
            updated_at=T0,
        )
    )
    db_session.commit()

    run = run_snapshot_stage(db_session, USER_ID, "1", now=T0)

    assert run.errors == []
    assert run.snapshot.expected_score is None
    assert run.snapshot.raw_data == [{"topic": "1.1 Натуральные и целые числа", "prob": pytest.approx(2 / 3)}]


def test_snapshot_stage_propagates_persistence_failure(db_session, monkeypatch):
    def broken_commit():
        raise SQLAlchemyError("read-only")

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(SnapshotPersistenceError):
        run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries()))


def test_plan_stage_stores_plan_and_narrative(db_session):
    db_session.add(StudentProfile(user_id=USER_ID, courses=["1"], goal_score=18, hours_per_week=5))
    db_session.commit()
    run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries(0.1)), now=T0)
    llm = _llm()

    run = run_plan_stage(db_session, USER_ID, "1", llm=llm, now=T0 + timedelta(minutes=1))

    stored = db_session.get(PlanNarrative, run.narrative.id)
    assert stored.narrative == "Study fractions this week."
    assert stored.seen is False
    assert stored.plan["topics_to_study"][0] == "1.1"
    assert stored.progress_diff is None
    assert run.errors == []

    request = llm.try_generate_study_narrative.call_args.args[0]
    assert request.goal_score == 18
    assert all("навык" not in entry for entry in request.progress)


def test_plan_stage_diffs_against_previous_plan(db_session):
    run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries(0.1)), now=T0)
    run_plan_stage(db_session, USER_ID, "1", llm=_llm(), now=T0 + timedelta(minutes=1))
    run_snapshot_stage(
        db_session, USER_ID, "1", calculator=StaticCalculator(_entries(0.6)), now=T0 + timedelta(days=1)
    )

    run = run_plan_stage(db_session, USER_ID, "1", llm=_llm(), now=T0 + timedelta(days=1, minutes=1))

    assert run.progress_diff is not None
    topic_change = next(e for e in run.progress_diff if isinstance(e, TopicProbability))
    assert topic_change.prob == pytest.approx(0.5)
    assert run.narrative.progress_diff[0] == {"topic": "1.1 Натуральные и целые числа", "prob": pytest.approx(0.5)}


def test_plan_stage_persists_without_narrative(db_session):
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("rate limited")
    run_snapshot_stage(db_session, USER_ID, "1", calculator=StaticCalculator(_entries()), now=T0)

    run = run_plan_stage(db_session, USER_ID, "1", llm=LLMService(client=client))

    assert run.narrative.id is not None
    assert run.narrative.narrative is None
    assert any("narrative" in error for error in run.errors)


def test_run_pair_with_plan(db_session):
    response = run_pair(
        db_session,
        USER_ID,
        "1",
        with_plan=True,
        calculator=StaticCalculator(_entries()),
        llm=_llm(),
    )

    assert response.status == "success"
    assert response.snapshot_id is not None
    assert response.expected_score is not None
    assert response.plan.narrative == "Study fractions this week."
    assert db_session.query(PlanNarrative).count() == 1
