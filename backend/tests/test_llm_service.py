from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.schemas.plan import StudyPlan
from app.services.llm_service import (
    LLMService,
    NarrativeRequest,
    build_narrative_prompt,
    days_until,
)


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _request(**overrides):
    data = dict(
        course_id="1",
        plan=StudyPlan(topics_to_study=["1.1"], high_importance_skills=[1]),
        progress=[{"topic": "1.1 Числа", "prob": 0.1}],
        goal_score=20,
        hours_per_week=4,
        school_grade=4,
        days_to_exam=30,
    )
    data.update(overrides)
    return NarrativeRequest(**data)


def test_days_until_rounds_up():
    assert days_until("2026-05-29", today=datetime(2026, 5, 27, 12, 0)) == 2
    assert days_until("2026-05-29", today=datetime(2026, 5, 29)) == 0


def test_prompt_contains_plan_and_placeholders():
    prompt = build_narrative_prompt(_request(word_limit=300))

    assert "300" in prompt
    assert '"topics_to_study"' in prompt
    assert "1.1 Числа" in prompt
    assert "Нет предыдущих заданий" in prompt
    assert "Нет данных о прогрессе" in prompt
    assert "Дней до экзамена: 30" in prompt


def test_prompt_includes_previous_plan_and_diff():
    prompt = build_narrative_prompt(
        _request(
            previous_plan={"topics_to_study": ["9.9"]},
            progress_diff=[{"topic": "1.1 Числа", "prob": 0.25}],
        )
    )
    assert "9.9" in prompt
    assert "0.25" in prompt


def test_generate_returns_stripped_text():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion("  Work on fractions.  ")

    text = LLMService(client=client).generate_study_narrative(_request())

    assert text == "Work on fractions."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["messages"][1]["role"] == "user"


def test_generate_rejects_empty_output():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion("   ")

    with pytest.raises(ValueError):
        LLMService(client=client).generate_study_narrative(_request())


def test_try_generate_swallows_errors():
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("timeout")

    assert LLMService(client=client).try_generate_study_narrative(_request()) is None


def test_unconfigured_client():
    service = LLMService()
    assert service.client is None
    assert service.try_generate_study_narrative(_request()) is None
