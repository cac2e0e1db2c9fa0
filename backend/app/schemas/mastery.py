"""
Probability table entries.

A probability table is one flat list mixing three kinds of estimates
(topic, skill, FIPI task). Stored snapshots keep the legacy JSON shape,
where the kind is implied by which key is present:

    {"topic": "1.1 Натуральные и целые числа", "prob": 0.4}
    {"навык": 12, "prob": 0.7}
    {"задача ФИПИ": 6, "prob": 0.2}

In code every entry carries an explicit ``kind`` discriminator.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

TOPIC_KEY = "topic"
SKILL_KEY = "навык"
FIPI_TASK_KEY = "задача ФИПИ"


def clamp_probability(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class _ProbabilityEntryBase(BaseModel, ABC):
    model_config = ConfigDict(frozen=True)

    prob: float

    @abstractmethod
    def identity(self) -> tuple[str, str]:
        """Key made of every field except ``prob``."""

    @abstractmethod
    def to_raw(self) -> dict[str, Any]: ...


class TopicProbability(_ProbabilityEntryBase):
    kind: Literal["topic"] = "topic"
    topic: str

    def identity(self) -> tuple[str, str]:
        return (self.kind, self.topic)

    def to_raw(self) -> dict[str, Any]:
        return {TOPIC_KEY: self.topic, "prob": self.prob}


class SkillProbability(_ProbabilityEntryBase):
    kind: Literal["skill"] = "skill"
    skill: int

    def identity(self) -> tuple[str, str]:
        return (self.kind, str(self.skill))

    def to_raw(self) -> dict[str, Any]:
        return {SKILL_KEY: self.skill, "prob": self.prob}


class FipiTaskProbability(_ProbabilityEntryBase):
    kind: Literal["fipi_task"] = "fipi_task"
    task: int

    def identity(self) -> tuple[str, str]:
        return (self.kind, str(self.task))

    def to_raw(self) -> dict[str, Any]:
        return {FIPI_TASK_KEY: self.task, "prob": self.prob}


ProbabilityEntry = Annotated[
    Union[TopicProbability, SkillProbability, FipiTaskProbability],
    Field(discriminator="kind"),
]


def entry_from_raw(raw: dict[str, Any]) -> TopicProbability | SkillProbability | FipiTaskProbability | None:
    """Parse one legacy-shaped entry; returns None when no known key is present."""
    prob = raw.get("prob")
    if not isinstance(prob, (int, float)) or isinstance(prob, bool):
        return None
    if raw.get(TOPIC_KEY):
        return TopicProbability(topic=str(raw[TOPIC_KEY]), prob=float(prob))
    if raw.get(FIPI_TASK_KEY) is not None:
        return FipiTaskProbability(task=int(raw[FIPI_TASK_KEY]), prob=float(prob))
    if raw.get(SKILL_KEY) is not None:
        return SkillProbability(skill=int(raw[SKILL_KEY]), prob=float(prob))
    return None


def entries_from_raw(
    raw_entries: list[dict[str, Any]] | None,
) -> list[TopicProbability | SkillProbability | FipiTaskProbability]:
    entries = []
    for raw in raw_entries or []:
        try:
            entry = entry_from_raw(raw)
        except (TypeError, ValueError):
            entry = None
        if entry is None:
            logger.debug("Dropping unrecognised probability entry: %r", raw)
            continue
        entries.append(entry)
    return entries


def entries_to_raw(entries: list[_ProbabilityEntryBase]) -> list[dict[str, Any]]:
    return [entry.to_raw() for entry in entries]


class MasteryTable(BaseModel):
    user_id: uuid.UUID
    course_id: str
    entries: list[ProbabilityEntry]
