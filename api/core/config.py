"""
Server settings, read from the environment or a ``.env`` file.

Every field maps to an upper-case variable of the same name
(``DATABASE_URL``, ``CORS_ORIGINS``, ``PORT``...).
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "Bhakti Tracker API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/api"
    # Comma-separated; "*" allows any origin
    cors_origins: str = "*"

    # Any async SQLAlchemy URL; the SQLite file's directory is created on startup
    database_url: str = "sqlite+aiosqlite:///./data/bhakti.db"

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
