from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )
    database_url: str = Field(..., env="DATABASE_URL")
    jwt_secret_key: str = Field(..., env="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)
    refresh_token_expire_minutes: int = Field(default=60 * 24 * 7)
    min_password_length: int = Field(default=6, ge=1)

    log_level: str = Field(default="INFO")

    # Tasks left in "pending" longer than this are expired to "not_completed".
    task_deadline_hours: int = Field(default=24, ge=1)
    deadline_tick_seconds: float = Field(default=1.0, gt=0)
    deadline_scheduler_enabled: bool = Field(default=True)

    # None means the whole conversation is loaded.
    message_history_limit: int | None = Field(default=None, ge=1)
    # 0=Monday ... 6=Sunday, used for reading analytics week buckets.
    week_start_day: int = Field(default=0, ge=0, le=6)

    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
