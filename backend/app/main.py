"""
Exam-prep progress service - FastAPI application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from rq import Worker
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.queue import _get_redis_connection
from app.routers import activity, catalog, progress
from app.services.catalog_service import CatalogError, catalog_service

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Fail loudly in the logs for a broken catalog, but keep serving other courses.
    for course_id in settings.SUPPORTED_COURSES:
        try:
            catalog_service.get(course_id)
        except CatalogError:
            logger.exception("Catalog for course %s could not be loaded", course_id)
    yield


app = FastAPI(
    title="Exam Prep Progress API",
    description="Mastery tracking, expected exam scores and study plans",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(activity.router, prefix="/api/v1")
app.include_router(progress.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _unavailable(component: str, **detail) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={"status": "error", component: "unavailable", **detail},
    )


@app.get("/")
def root():
    return {
        "message": "Exam Prep Progress API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
def health():
    """Liveness probe"""
    return {"status": "ok"}


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise _unavailable("database", error=str(exc)) from exc
    return {"status": "ok", "db": "ok"}


@app.get("/health/redis")
def health_redis():
    """Redis reachability (only needed with ASYNC_QUEUE_ENABLED)."""
    try:
        _get_redis_connection().ping()
    except RedisError as exc:
        raise _unavailable("redis", error=str(exc)) from exc
    return {"status": "ok", "redis": "ok"}


@app.get("/health/worker")
def health_worker():
    """At least one rq worker must be listening on the progress queue."""
    if not settings.ASYNC_QUEUE_ENABLED:
        return {"status": "skipped", "async_enabled": False}

    try:
        connection = _get_redis_connection()
        workers = Worker.all(connection=connection)
        listening = [w.name for w in workers if settings.RQ_QUEUE_NAME in w.queue_names()]
    except RedisError as exc:
        raise _unavailable("redis", error=str(exc)) from exc

    if not listening:
        raise _unavailable("worker", queue=settings.RQ_QUEUE_NAME, workers=0)

    return {
        "status": "ok",
        "async_enabled": True,
        "queue": settings.RQ_QUEUE_NAME,
        "workers": len(listening),
    }
