"""Application configuration using pydantic-settings."""

import warnings
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


# Find .env file: check backend dir first, then project root
_BACKEND_DIR = Path(__file__).parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _BACKEND_DIR / ".env" if (_BACKEND_DIR / ".env").exists() else _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The remote analysis service is optional: when ANALYSIS_SERVICE_URL is
    empty, reports are still classified locally but carry no explanation
    or recommendations, and document upload is unavailable.
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote analysis service (parse + interpret endpoints)
    analysis_service_url: str = ""
    analysis_service_token: str = ""
    analysis_timeout_seconds: float = 30.0

    # Authentication; empty disables the X-API-Key check
    api_key: str = ""

    # Panels
    default_panel: str = "cbc_basic"
    panels_file: str | None = None

    # Status assigned to absent or unparseable values. "normal" is kept for
    # clients that treat a blank field as within range.
    missing_value_status: Literal["unknown", "normal"] = "unknown"

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024

    # Application
    default_locale: str = "en"
    cors_origins: str = "http://localhost:3000"
    debug: bool = False

    def model_post_init(self, __context) -> None:
        """Warn about incomplete configuration."""
        if not self.analysis_service_url:
            warnings.warn(
                "ANALYSIS_SERVICE_URL not configured! Results will not include "
                "an interpretation and uploads are disabled.",
                UserWarning,
                stacklevel=2,
            )
        if self.missing_value_status == "normal":
            warnings.warn(
                "MISSING_VALUE_STATUS=normal reports absent values as normal.",
                UserWarning,
                stacklevel=2,
            )


settings = Settings()
