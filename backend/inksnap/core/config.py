from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    API_V1_STR: str = "/api/v1"

    # Tokens are issued by the identity provider; the gateway only verifies them.
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Use an absolute path so running the app from different directories
    # always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'inksnap.db'}"

    # Redis is only used for cross-process realtime fan-out.
    REDIS_URL: str = "redis://localhost:6379/0"
    WS_BUS_ENABLED: bool = False

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_ALL: bool = False

    # Cloudinary credentials. When unset, uploads are written to UPLOAD_DIR and
    # served from /static/uploads.
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    UPLOAD_DIR: str = str(BASE_DIR / "static" / "uploads")
    UPLOAD_PUBLIC_BASE_URL: str = "/static/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    GOOGLE_MAPS_API_KEY: str = ""
    GEOCODE_TIMEOUT: float = 3.0

    # Realtime stream tuning
    REALTIME_QUEUE_SIZE: int = 256
    REALTIME_HEARTBEAT_SECONDS: float = 20.0

    # Client-side gateway defaults
    INKSNAP_API_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT: float = 10.0

    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator(
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
        "GOOGLE_MAPS_API_KEY",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(
            self.CLOUDINARY_CLOUD_NAME
            and self.CLOUDINARY_API_KEY
            and self.CLOUDINARY_API_SECRET
        )


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
