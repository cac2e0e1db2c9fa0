from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

CATALOG_DATA_DIR = Path(__file__).resolve().parents[1] / "data" / "catalogs"


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg2://examprep:examprep@db:5432/examprep"
    LOG_LEVEL: str = "INFO"

    # Narrative generator (OpenAI-compatible endpoint)
    OPENAI_API_KEY: str | None = None
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_MODEL_NAME: str = "x-ai/grok-3-mini"
    LLM_TEMPERATURE: float = 0.6
    NARRATIVE_WORD_LIMIT: int = 500
    EXAM_DATE: str = "2026-05-29"

    # Async queue (optional)
    ASYNC_QUEUE_ENABLED: bool = False
    REDIS_URL: str = "redis://redis:6379/0"
    RQ_QUEUE_NAME: str = "examprep"
    RQ_JOB_TIMEOUT_SECONDS: int = 1800
    RQ_JOB_RETRY_MAX: int = 1

    # Progress pipeline
    CATALOG_DIR: Path = CATALOG_DATA_DIR
    SUPPORTED_COURSES: list[str] = ["1", "2", "3"]
    SNAPSHOT_COOLDOWN_MINUTES: int = 30
    SWEEP_PAIR_DELAY_SECONDS: float = 1.0
    SWEEP_GENERATE_NARRATIVE: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
