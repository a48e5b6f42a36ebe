from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    NODE_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Either a full DATABASE_URL or the POSTGRES_* parts
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_DATABASE: str = "school_assignments"
    POSTGRES_PORT: str = "5432"  # Default port for PostgreSQL

    # Session cookie authentication
    SESSION_SECRET: str = "your-session-secret-here"
    SESSION_COOKIE_NAME: str = "session_token"
    SESSION_EXPIRE_HOURS: int = 24

    # CORS configuration - comma-separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001,http://localhost:8000"

    # External audio analysis microservice
    AUDIO_ANALYSIS_URL: str = "http://localhost:8001"
    AUDIO_ANALYSIS_API_KEY: str = ""
    AUDIO_ANALYSIS_TIMEOUT: int = 60

    # Class statistics thresholds
    ACTIVE_STUDENT_WINDOW_DAYS: int = 7
    HELP_COMPLETION_THRESHOLD: float = 50.0
    HELP_ACCURACY_THRESHOLD: float = 60.0

    @property
    def POSTGRES_URL(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=".env.development", extra="ignore")


settings = Settings()
