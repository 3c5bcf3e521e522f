from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # Opaque summarisation endpoint used by the CHR overview
    AI_SUMMARY_URL: str | None = None
    AI_SUMMARY_API_KEY: str | None = None
    AI_SUMMARY_TIMEOUT_SECONDS: float = 30.0

    # Roster uploads create accounts with "<role><suffix>" as the initial password
    DEFAULT_PASSWORD_SUFFIX: str = "123"

    model_config = SettingsConfigDict(env_file=".env")

settings = Settings()
