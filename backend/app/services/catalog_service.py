"""
Static topic/skill catalogs, one JSON file per course.

Each file holds the curriculum-ordered topic list (with the skills of each
topic and their importance tier), the FIPI task -> prerequisite topic codes
mapping and the number of FIPI tasks in the exam. Files are validated once
when first loaded and cached for the life of the process.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from app.core.config import settings

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """A course catalog is missing or internally inconsistent."""


class SkillRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    importance: int = Field(ge=0)


class CatalogTopic(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    skills: list[SkillRef] = []

    @property
    def full_name(self) -> str:
        """Key under which topic mastery is reported, e.g. ``"1.1 Натуральные и целые числа"``."""
        return f"{self.code} {self.name}".strip()


class CourseCatalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_id: str
    title: str = ""
    fipi_task_count: int = Field(ge=0)
    topics: list[CatalogTopic]
    fipi_task_topics: dict[int, list[str]] = {}

    @model_validator(mode="after")
    def _check_references(self) -> "CourseCatalog":
        codes = [topic.code for topic in self.topics]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise ValueError(f"duplicate topic codes: {duplicates}")

        known = set(codes)
        for task, topic_codes in self.fipi_task_topics.items():
            missing = [code for code in topic_codes if code not in known]
            if missing:
                raise ValueError(f"FIPI task {task} references unknown topics: {missing}")
            if task < 1:
                raise ValueError(f"FIPI task numbers start at 1, got {task}")

        numbers = [skill.number for topic in self.topics for skill in topic.skills]
        if len(numbers) != len(set(numbers)):
            raise ValueError("skill numbers must be unique within a course")
        return self

    @property
    def ordered_topic_codes(self) -> list[str]:
        return [topic.code for topic in self.topics]

    @property
    def topics_by_code(self) -> dict[str, CatalogTopic]:
        return {topic.code: topic for topic in self.topics}

    def topic_key(self, code: str) -> str:
        topic = self.topics_by_code.get(code)
        return topic.full_name if topic else code

    def skills_for_topic(self, code: str) -> list[SkillRef]:
        topic = self.topics_by_code.get(code)
        return list(topic.skills) if topic else []

    def skill_numbers(self) -> set[int]:
        return {skill.number for topic in self.topics for skill in topic.skills}

    def resolve_topic(self, ref: str) -> CatalogTopic | None:
        """Accept either a bare code (``"7.2"``) or a full topic name."""
        ref = " ".join(str(ref).split())
        by_code = self.topics_by_code
        if ref in by_code:
            return by_code[ref]
        for topic in self.topics:
            if topic.full_name == ref:
                return topic
        return None


class CatalogService:
    """Loads and caches course catalogs from ``settings.CATALOG_DIR``."""

    def __init__(self, catalog_dir: Path | None = None) -> None:
        self._catalog_dir = catalog_dir
        self._cache: dict[str, CourseCatalog] = {}

    @property
    def catalog_dir(self) -> Path:
        return Path(self._catalog_dir or settings.CATALOG_DIR)

    def _path_for(self, course_id: str) -> Path:
        return self.catalog_dir / f"course_{course_id}.json"

    def available_courses(self) -> list[str]:
        return sorted(
            path.stem.removeprefix("course_") for path in self.catalog_dir.glob("course_*.json")
        )

    def get(self, course_id: str) -> CourseCatalog:
        course_id = str(course_id)
        if course_id in self._cache:
            return self._cache[course_id]

        path = self._path_for(course_id)
        if not path.is_file():
            raise CatalogError(f"No catalog for course {course_id!r} in {self.catalog_dir}")
        try:
            catalog = CourseCatalog.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise CatalogError(f"Invalid catalog for course {course_id!r}: {exc}") from exc
        if catalog.course_id != course_id:
            raise CatalogError(
                f"Catalog file {path.name} declares course {catalog.course_id!r}"
            )

        logger.info(
            "Loaded catalog for course %s: %d topics, %d FIPI tasks",
            course_id,
            len(catalog.topics),
            len(catalog.fipi_task_topics),
        )
        self._cache[course_id] = catalog
        return catalog

    def clear(self) -> None:
        self._cache.clear()


# Singleton instance
catalog_service = CatalogService()
