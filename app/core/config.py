from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "ClinixNote"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "clinixnote"
    DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = False
    DB_CREATE_ALL: bool = True

    REDIS_URL: str = "redis://localhost:6379/0"
    LOCK_BACKEND: str = "redis" # redis, local
    LOCK_TIMEOUT_SECONDS: float = 60.0
    LOCK_BLOCKING_TIMEOUT_SECONDS: float = 15.0

    SECRET_KEY: str = "clinixnote-development-secret-key-change-me"
    ALGORITHM: str = "HS256"

    EMAIL_ENABLED: bool = False
    EMAIL_FROM_ADDRESS: str = "ClinixNote <no-reply@clinixnote.com>"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: int = 30

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
