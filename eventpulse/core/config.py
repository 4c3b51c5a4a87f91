
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "EventPulse API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "eventpulse_db"
    POSTGRES_PORT: int = 5432
    # Leave empty to build the URL from the POSTGRES_* parts
    DATABASE_URL: str = ""
    SEED_SAMPLE_DATA: bool = True

    # Bookings
    MAX_SEATS_PER_BOOKING: int = 10
    TICKET_ARTIFACT_DIR: str = "uploads/tickets"
    TICKET_ARTIFACT_URL_PREFIX: str = "/uploads/tickets"

    # Live presence channel
    PRESENCE_QUEUE_SIZE: int = 100
    ADVISORY_HOLD_SECONDS: int = 60 * 10
    ADVISORY_SWEEP_INTERVAL_SECONDS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
