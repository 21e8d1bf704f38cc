from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Asset Hub"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./data/asset-hub.db"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    file_logging: bool = False
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5

    # External todo system
    todo_base_url: Optional[str] = None
    todo_token: Optional[str] = None
    todo_link_base: Optional[str] = None
    todo_timeout: float = 10.0

    # "direct" calls the todo system after commit, "queued" hands off to celery
    notification_mode: str = "direct"

    # Redis / Celery
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_url

    @property
    def todo_enabled(self) -> bool:
        return bool(self.todo_base_url and self.todo_token)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ASSET_HUB_",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
