"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    PROJECT_NAME: str = "Meter Reader"
    VERSION: str = "0.1.0"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    DATABASE_URL: str = "sqlite:///./meter_reader.db"

    # Uploaded meter photos, served back under /uploads
    UPLOAD_DIR: str = "./uploads"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    # Vision model (any OpenAI-compatible chat completions endpoint)
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    VISION_MODEL: str = "gpt-4o-mini"
    VISION_TIMEOUT_SECONDS: float = 60.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
