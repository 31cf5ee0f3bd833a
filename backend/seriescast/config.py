# backend/seriescast/config.py
from functools import lru_cache
from typing import List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # environment: "dev" for running the app locally, "test" for pytest
    ENV: str = "dev"

    DATABASE_URL: str | None = None
    TEST_DATABASE_URL: str | None = None
    DB_APP_ROLE: str | None = None
    DB_REQUIRE_SSL: bool = True

    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    # --- Upload ---
    MAX_UPLOAD_BYTES: int = 200 * 1024 * 1024  # 200MB
    # Permissive by default: a file may resume after a multi-interval gap from
    # the stored frontier as long as its own cadence is consistent.
    ALLOW_FRONTIER_GAPS: bool = True

    # --- Prediction ---
    ROLLING_WINDOW: int = Field(7, ge=1)
    # Number of most recent real points sampled for the window and the integer check.
    PREDICTION_HISTORY_LIMIT: int = Field(20, ge=1)

    @model_validator(mode="after")
    def _check_history_covers_window(self):
        if self.PREDICTION_HISTORY_LIMIT < self.ROLLING_WINDOW:
            raise ValueError("PREDICTION_HISTORY_LIMIT must be >= ROLLING_WINDOW")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
