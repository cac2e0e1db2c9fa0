from pydantic import BaseModel


class SkillRefResponse(BaseModel):
    number: int
    importance: int


class TopicResponse(BaseModel):
    code: str
    name: str
    position: int
    skills: list[SkillRefResponse]


class CatalogResponse(BaseModel):
    course_id: str
    title: str
    fipi_task_count: int
    topics: list[TopicResponse]
    fipi_task_topics: dict[int, list[str]]
