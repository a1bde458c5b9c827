"""Auth configuration (credential signing, lifetimes, refresh cookie)."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Auth settings from environment variables."""

    jwt_secret: str
    """HMAC secret used to sign access credentials"""

    jwt_algorithm: str = "HS256"
    """Signing algorithm for access credentials"""

    jwt_audience: str = "photodrop-access"
    """Audience claim stamped on and required of access credentials"""

    access_token_ttl_minutes: int = 15
    """Access credential lifetime"""

    refresh_token_ttl_days: int = 30
    """Refresh credential lifetime"""

    magic_link_ttl_minutes: int = 15
    """Lifetime of login and invite links"""

    refresh_cookie_name: str = "refreshToken"
    """Name of the HTTP-only cookie carrying the refresh credential"""

    cookie_secure: bool = True
    """Only send the refresh cookie over HTTPS"""

    cookie_samesite: str = "strict"
    """SameSite policy for the refresh cookie"""

    @property
    def refresh_cookie_max_age(self) -> int:
        """Refresh cookie lifetime in seconds."""
        return self.refresh_token_ttl_days * 24 * 60 * 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AUTH_",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Get cached auth settings.

    Settings are loaded from environment variables with AUTH_ prefix:
    - AUTH_JWT_SECRET: signing secret for access credentials (required)
    - AUTH_ACCESS_TOKEN_TTL_MINUTES / AUTH_REFRESH_TOKEN_TTL_DAYS: lifetimes
    - AUTH_COOKIE_SECURE: set false for plain-HTTP local development

    Returns:
        AuthSettings: Cached settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AuthSettings()
