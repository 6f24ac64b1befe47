from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from environment variables (.env)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "GHG Inventory"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # SECURITY
    SECRET_KEY: str = "CHANGE_ME"
    COOKIE_SECURE: bool = False   # set True behind HTTPS
    COOKIE_SAMESITE: str = "lax"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 12  # 12h

    # CORS
    CORS_ALLOW_ORIGINS: str = "*"  # "*" or "https://a.com,https://b.com"
    CORS_ALLOW_CREDENTIALS: bool = False

    # DATABASE / CACHE
    # e.g. mysql+pymysql://user:pass@db:3306/ghgi
    DATABASE_DSN: str = "sqlite:///./ghgi.db"
    REDIS_URL: str = ""  # empty => no caching
    SUMMARY_CACHE_SECONDS: int = 15

    # INVENTORY
    DEFAULT_YEAR: int = 2023
    SUBMIT_REQUIRES_LOCATION: bool = False

    # DEV BOOTSTRAP
    AUTO_CREATE_ADMIN: bool = True
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "password"
    DEFAULT_ADMIN_FULL_NAME: str = "Admin User"

    # SAMPLE DATA (for local testing)
    AUTO_SEED_SAMPLE: bool = False

    def cors_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if not s or s == "*":
            return ["*"]
        return [x.strip() for x in s.split(",") if x.strip()]

    def is_sqlite(self) -> bool:
        return self.DATABASE_DSN.startswith("sqlite")


settings = Settings()
