"""Configuracion de la aplicacion usando Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuracion principal de Outcome Planner."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # App
    app_env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Base de datos (sqlite en desarrollo, postgresql+asyncpg en produccion)
    database_url: str = "sqlite+aiosqlite:///./data/planner.db"

    # Gemini (oraculo de sugerencias)
    gemini_api_key: str = ""
    suggestion_model: str = "gemini/gemini-1.5-flash"
    suggestion_timeout_seconds: float = 30.0
    suggestion_min_items: int = 2

    # Defaults de dominio
    default_chunk_color: str = "#6366F1"
    default_action_priority: int = 2
    default_action_duration_minutes: int = 30

    # Reintentos del store
    store_retry_attempts: int = 3

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuracion cacheada."""
    return Settings()
