"""Application configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./sheet_engine.db"

    # Engine
    history_capacity: int = 20
    default_healer_present: bool = False

    # Logging
    log_level: str = "INFO"

    # App
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def database_url_sync(self) -> str:
        """Sync version of database_url for Alembic CLI."""
        return self.database_url.replace("+aiosqlite", "").replace("+asyncpg", "")


settings = Settings()
