from fastapi import APIRouter, HTTPException

from app.schemas.catalog import CatalogResponse, SkillRefResponse, TopicResponse
from app.services.catalog_service import CatalogError, catalog_service

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("", response_model=list[str])
def list_courses():
    return catalog_service.available_courses()


@router.get("/{course_id}", response_model=CatalogResponse)
def get_catalog(course_id: str):
    try:
        catalog = catalog_service.get(course_id)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return CatalogResponse(
        course_id=catalog.course_id,
        title=catalog.title,
        fipi_task_count=catalog.fipi_task_count,
        topics=[
            TopicResponse(
                code=topic.code,
                name=topic.name,
                position=position,
                skills=[
                    SkillRefResponse(number=skill.number, importance=skill.importance)
                    for skill in topic.skills
                ],
            )
            for position, topic in enumerate(catalog.topics)
        ],
        fipi_task_topics=catalog.fipi_task_topics,
    )
