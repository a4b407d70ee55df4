from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Cineplex Booking API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8

    ADMIN_SECRET_KEY: str = "change-this-admin-secret"

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "cineplex_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Reservation engine
    HOLD_TTL_SECONDS: int = 600
    MAX_HOLD_TTL_SECONDS: int = 900
    MAX_SEATS_PER_HOLD: int = 6
    HOLD_SWEEP_INTERVAL_SECONDS: int = 30
    # Unpaid bookings older than this are cancelled by the sweep; 0 disables.
    PENDING_PAYMENT_TIMEOUT_SECONDS: int = 900

    # Simulated payment collaborator
    PAYMENT_SUCCESS_RATE: float = 0.9

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
