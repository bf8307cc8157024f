from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

ALLOWED_SLOT_STEPS = (30, 60)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT (tokens are issued by the external auth provider; we only verify them)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Scheduling rules
    slot_step_minutes: int = 60
    utc_offset_hours: int = -3  # clinic civil time, fixed offset, no DST
    view_cache_ttl_seconds: int = 300
    view_cache_maxsize: int = 1024

    # Env
    env: str = "development"

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_slot_step(cls, value: int) -> int:
        if value not in ALLOWED_SLOT_STEPS:
            raise ValueError(f"slot_step_minutes must be one of {ALLOWED_SLOT_STEPS}")
        return value

    @field_validator("utc_offset_hours")
    @classmethod
    def validate_offset(cls, value: int) -> int:
        if not -12 <= value <= 14:
            raise ValueError("utc_offset_hours must be between -12 and 14")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
