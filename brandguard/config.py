import json
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., Google clients).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_POOL_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30

    TEMPORAL_NAMESPACE: str = "default"
    TEMPORAL_TASK_QUEUE: str = "brandguard-analysis"
    TEMPORAL_ADDRESS: str = "localhost:7233"
    TEMPORAL_QUEUE_SCHEDULE_ID: str = "brandguard-analysis-queue"
    TEMPORAL_QUEUE_SCHEDULE_INTERVAL_SECONDS: int = 60

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    # Bearer token for the queue trigger and retry routes. Unset disables the check.
    WORKER_TRIGGER_TOKEN: str | None = None

    ASSET_STORAGE_BUCKET: str | None = None
    ASSET_STORAGE_ENDPOINT: str | None = None
    ASSET_STORAGE_REGION: str = "us-east-1"
    ASSET_STORAGE_ACCESS_KEY: str | None = None
    ASSET_STORAGE_SECRET_KEY: str | None = None
    # Presigned URLs are handed to the vision and transcription services, which may
    # fetch them minutes after the job starts.
    ASSET_STORAGE_PRESIGN_TTL_SECONDS: int = 60 * 60
    ASSET_STORAGE_USE_SSL: bool = True
    ASSET_STORAGE_FORCE_PATH_STYLE: bool = True

    GEMINI_API_KEY: str | None = None
    VISION_MODEL: str = "gemini-1.5-pro"
    VISION_MAX_OUTPUT_TOKENS: int = 8192
    VISION_INLINE_MAX_BYTES: int = 20 * 1024 * 1024
    VISION_DOWNLOAD_TIMEOUT_SECONDS: float = 60.0
    VISION_REQUEST_TIMEOUT_SECONDS: float = 150.0

    ASSEMBLYAI_API_KEY: str | None = None
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com"
    TRANSCRIPTION_REQUEST_TIMEOUT_SECONDS: float = 30.0
    TRANSCRIPTION_POLL_INTERVAL_SECONDS: float = 5.0
    TRANSCRIPTION_TIMEOUT_SECONDS: float = 300.0

    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com"
    VOCABULARY_MODEL: str = "claude-3-5-sonnet-20241022"
    VOCABULARY_MAX_TOKENS: int = 2000
    VOCABULARY_REQUEST_TIMEOUT_SECONDS: float = 60.0

    RETRY_MAX_ATTEMPTS: int = 5
    RETRY_BASE_DELAY_SECONDS: float = 2.0
    RETRY_MAX_DELAY_SECONDS: float = 30.0

    JOB_STALE_AFTER_MINUTES: int = 30

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    model_config = SettingsConfigDict(env_file=".env", env_json_loads=_coerce_json, extra="ignore")


settings = Settings()
