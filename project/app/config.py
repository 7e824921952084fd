# app/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: Optional[str] = None      # URL do banco (postgresql+asyncpg://...)

    AUTH_SECRET_KEY: Optional[str] = None   # chave de assinatura dos tokens do admin
    AUTH_TOKEN_EXPIRE_MINUTES: int = 480
    AUTH_LOGIN: str = "admin"
    AUTH_PASSWORD_HASH: Optional[str] = None  # hash sha256_crypt (passlib)

    EXPORT_STAGE_TIMEOUT_SECONDS: float = 10.0  # limite por etapa da exportação
    SESSIONS_HISTORY_LIMIT: int = 30

    LOG_DIR: str = "app/log"
    LOG_PRINT: str = "1"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()


def get_settings() -> Settings:
    return settings
