"""Application settings loaded from the environment."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide settings (database, frontend origin, email)."""

    database_url: str = "sqlite:///./photodrop.db"

    # App
    app_name: str = "photodrop"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    app_url: str = "http://localhost:5173"
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Email (Resend)
    email_resend_api_key: str = ""
    email_from: str = "Photodrop <onboarding@resend.dev>"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
