from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MIME_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "rtf": "application/rtf",
    "txt": "text/plain",
    "htm": "text/html",
    "html": "text/html",
    "xml": "text/xml",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    pg_dsn: str | None = Field(default=None, alias="PG_DSN")
    postgres_host: str | None = Field(default=None, alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(default=None, alias="POSTGRES_DB")
    postgres_user: str | None = Field(default=None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(default=None, alias="POSTGRES_PASSWORD")
    queue_schema: str = Field(default="public", alias="QUEUE_SCHEMA")
    queue_store_id: str = Field(default="crawlq", alias="QUEUE_STORE_ID")

    spool_dir: str = Field(default="spool", alias="SPOOL_DIR")
    max_attachment_size: int = Field(default=30 * 1024 * 1024, alias="MAX_ATTACHMENT_SIZE")
    excluded_extensions: list[str] = Field(
        default_factory=lambda: ["exe", "dll", "zip", "jar", "mp3", "mp4", "avi"],
        alias="EXCLUDED_EXTENSIONS",
    )
    mime_types: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MIME_TYPES), alias="MIME_TYPES")
    server_domains: dict[str, str] = Field(default_factory=dict, alias="SERVER_DOMAINS")

    crawler_threads: int = Field(default=1, alias="CRAWLER_THREADS")
    min_spool_free_mb: int = Field(default=300, alias="MIN_SPOOL_FREE_MB")
    max_consecutive_exceptions: int = Field(default=5, alias="MAX_CONSECUTIVE_EXCEPTIONS")
    idle_wait_timeout_s: float = Field(default=300.0, alias="IDLE_WAIT_TIMEOUT_S")

    nats_url: str | None = Field(default=None, alias="NATS_URL")
    nats_work_subject: str = Field(default="crawl.work_available", alias="NATS_WORK_SUBJECT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")


def load_settings() -> Settings:
    return Settings()
