"""Application settings read from the environment and an optional .env file."""

from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# backend/.env wins over a .env at the repository root
env_path = Path(__file__).parent.parent.parent / ".env"
if not env_path.exists():
    env_path = Path(__file__).parent.parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


class Settings(BaseSettings):
    """Environment-aware configuration (DB URL, storage, import tuning)."""

    app_name: str = "SchoolMaster"
    log_level: str = "INFO"

    database_url: str = Field(
        default="sqlite:///./data/app.db",
        description="Database connection URL",
    )

    imports_dir: str = Field(
        default="storage/imports",
        description="Directory for durably staged user import CSVs (absolute or relative path)",
    )

    # Import job tuning
    import_batch_size: int = Field(default=25, ge=1)
    job_message_capacity: int = Field(default=200, ge=1)
    job_error_capacity: int = Field(default=100, ge=1)
    temp_password_length: int = Field(default=12, ge=4)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    class_auto_archive_days: int = Field(default=365, ge=1)

    # Comma separated; see cors_origins
    cors_origins_raw: str | None = Field(
        default=None,
        validation_alias="CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins",
        exclude=True,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origins(self) -> List[str]:
        if self.cors_origins_raw is None or not self.cors_origins_raw.strip():
            return list(DEFAULT_CORS_ORIGINS)
        origins = [
            origin.strip().rstrip("/")
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
        return origins if origins else list(DEFAULT_CORS_ORIGINS)

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_url(cls, v: str | None) -> str:
        """Accept postgres:// URLs by pinning the psycopg 3 driver."""
        if v is None:
            return "sqlite:///./data/app.db"
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg://", 1)
        return v

    @field_validator("imports_dir", mode="after")
    @classmethod
    def resolve_imports_dir(cls, v: str) -> str:
        """Resolve imports_dir to absolute path so staged files survive cwd changes."""
        path = Path(v)
        if not path.is_absolute():
            backend_dir = Path(__file__).parent.parent.parent
            path = (backend_dir / v).resolve()
        else:
            path = path.resolve()
        path.mkdir(parents=True, exist_ok=True)
        return str(path)


@lru_cache
def get_settings() -> Settings:
    return Settings()
