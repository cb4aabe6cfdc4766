"""
Application configuration from environment variables.
Loads .env from the backend directory so secrets are found regardless of cwd.
Built once at import; the token service receives its JWT fields explicitly (see app.services.auth).
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env next to backend/ (parent of app/): load explicitly so SECRET_KEY is set even when run from repo root
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    from dotenv import load_dotenv
    load_dotenv(_ENV_FILE, override=False)
else:
    # Fallback: try backend/.env relative to cwd (e.g. when running from repo root)
    import os
    _cwd_env = Path(os.getcwd()) / "backend" / ".env"
    if _cwd_env.exists():
        from dotenv import load_dotenv
        load_dotenv(_cwd_env, override=False)

DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    """Load and validate config from env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: sqlite for local runs and tests, postgresql for production
    database_url: str = "sqlite:///./codereview_dev.db"

    # Environment: set ENV=production in production; used to enforce SECRET_KEY.
    env: str = ""

    # JWT. In production (ENV=production), SECRET_KEY must be set.
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 168

    # Comma-separated e-mails that register with the global admin role.
    admin_emails: str = ""

    # Pagination for list endpoints (limit/offset)
    default_page_size: int = 50
    max_page_size: int = 100

    # CORS: comma-separated origins
    cors_origins: str = "http://localhost:3000"

    log_level: str = "INFO"
    debug: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper() if isinstance(v, str) else "INFO"

    @property
    def admin_email_set(self) -> frozenset[str]:
        """Normalized admin e-mails (lower case, stripped)."""
        return frozenset(e.strip().lower() for e in self.admin_emails.split(",") if e.strip())

    @property
    def is_production(self) -> bool:
        return (self.env or "").strip().lower() == "production"


settings = Settings()
