import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/knowledge_hub"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")

    # Document lifecycle
    duplicate_threshold: float = float(os.getenv("DUPLICATE_THRESHOLD", "0.8"))
    audit_fail_closed: bool = _env_bool("AUDIT_FAIL_CLOSED")
    version_append_retries: int = int(os.getenv("VERSION_APPEND_RETRIES", "3"))
    leaderboard_default_limit: int = int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "10"))

    # Attachment settings
    attachment_upload_dir: str = os.getenv("ATTACHMENT_UPLOAD_DIR", "uploads")
    attachment_url_prefix: str = os.getenv("ATTACHMENT_URL_PREFIX", "/uploads")
    attachment_max_size_bytes: int = int(
        os.getenv("ATTACHMENT_MAX_SIZE_BYTES", str(20 * 1024 * 1024))
    )  # 20MB

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "knowledge-attachments")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "Knowledge Hub")


settings = Settings()
