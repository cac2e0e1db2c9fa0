import os

# Settings are read at import time; point them at an in-memory database
# before anything from app is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ASYNC_QUEUE_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SWEEP_PAIR_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from app.core.db import Base, SessionLocal, engine
from app.main import app
from app.services.catalog_service import CatalogTopic, CourseCatalog, SkillRef


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    return TestClient(app)


@pytest.fixture
def catalog() -> CourseCatalog:
    """Four-topic course used by the unit tests."""
    return CourseCatalog(
        course_id="1",
        title="Test course",
        fipi_task_count=4,
        topics=[
            CatalogTopic(
                code="1.1",
                name="Числа",
                skills=[
                    SkillRef(number=1, importance=0),
                    SkillRef(number=2, importance=3),
                    SkillRef(number=3, importance=4),
                ],
            ),
            CatalogTopic(
                code="1.2",
                name="Дроби",
                skills=[SkillRef(number=4, importance=1), SkillRef(number=5, importance=2)],
            ),
            CatalogTopic(
                code="1.3",
                name="Степени",
                skills=[SkillRef(number=6, importance=2), SkillRef(number=7, importance=5)],
            ),
            CatalogTopic(code="1.4", name="Корни", skills=[SkillRef(number=8, importance=0)]),
        ],
        fipi_task_topics={
            1: ["1.1", "1.2", "1.3", "1.4"],
            2: ["1.2"],
            3: ["1.1", "1.3"],
        },
    )
