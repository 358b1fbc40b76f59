"""Application configuration."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings.

    Built once at startup and handed to the components that need it; nothing
    below reads the environment directly.
    """

    # App
    APP_NAME: str = "OrderDesk"
    ENV: str = "development"
    ALLOWED_ORIGINS: str = "http://localhost:3002,http://localhost:5173"
    PUBLIC_BASE_URL: str = "http://localhost:3002"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 5

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 24 * 60

    # Password hashing (bcrypt cost factor)
    BCRYPT_ROUNDS: int = 12

    # Auth cookie
    AUTH_COOKIE_NAME: str = "token"
    AUTH_COOKIE_SAMESITE: str = "lax"
    # Always treated as True in production.
    AUTH_COOKIE_SECURE: bool = False
    AUTH_COOKIE_DOMAIN: str | None = None
    AUTH_COOKIE_REMEMBER_DAYS: int = 30
    AUTH_COOKIE_SESSION_MINUTES: int = 90

    # OTP
    OTP_EXPIRY_SECONDS: int = 2 * 60
    OTP_THROTTLE_SECONDS: int = 60

    # Orders
    ORDER_EDIT_WINDOW_HOURS: int = 72
    ADMIN_EMAIL_DOMAIN: str = "oneguyproductions.com"

    # reCAPTCHA
    RECAPTCHA_SECRET: str | None = None
    RECAPTCHA_VERIFY_URL: str = "https://www.google.com/recaptcha/api/siteverify"
    RECAPTCHA_MIN_SCORE: float | None = None

    # Email (Resend)
    RESEND_API_KEY: str
    RESEND_API_URL: str = "https://api.resend.com/emails"
    RESEND_FROM_EMAIL: str
    RESEND_ORDER_RECEIVER_EMAIL: str
    RESEND_CONTACT_RECEIVER_EMAIL: str

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    HTTP_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def recaptcha_min_score(self) -> float:
        if self.RECAPTCHA_MIN_SCORE is not None:
            return self.RECAPTCHA_MIN_SCORE
        return 0.5 if self.is_production else 0.1

    @property
    def auth_cookie_secure(self) -> bool:
        return self.AUTH_COOKIE_SECURE or self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
