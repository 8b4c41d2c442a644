"""
Service configuration.

Every tunable lives on ServiceConfig, which is built once at startup
(usually from environment variables) and handed to create_app().
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]


class ServiceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # server
    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    shutdown_grace: int = Field(default=10, ge=0)

    # reachability check
    check_timeout: float = Field(default=10.0, gt=0)
    check_method: str = "GET"
    max_redirects: int = Field(default=5, ge=0)
    accept_any_status: bool = True
    check_user_agent: str = "Mozilla/5.0 (compatible; E2ETester/1.0)"

    # browser runner
    default_target_url: str = "https://www.google.com"
    expected_title: Optional[str] = None
    legacy_expected_title: Optional[str] = "Google"
    navigation_timeout: float = Field(default=15.0, gt=0)
    network_idle_timeout: float = Field(default=5.0, gt=0)
    overall_timeout: float = Field(default=30.0, gt=0)
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=720, gt=0)
    browser_user_agent: str = "Playwright E2E Test Runner/1.0"
    browser_args: List[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))
    evidence_dir: Path = Path("evidence")
    take_screenshots: bool = True

    @field_validator("check_method")
    @classmethod
    def _check_method_supported(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in {"GET", "HEAD"}:
            raise ValueError("check_method must be GET or HEAD")
        return method

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def viewport(self) -> dict:
        return {"width": self.viewport_width, "height": self.viewport_height}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build a config from environment variables.
        Unset variables fall back to the field defaults; bad values raise
        pydantic.ValidationError.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        simple = {
            "HOST": "host",
            "PORT": "port",
            "APP_ENV": "environment",
            "LOG_LEVEL": "log_level",
            "CHECK_TIMEOUT": "check_timeout",
            "CHECK_METHOD": "check_method",
            "CHECK_MAX_REDIRECTS": "max_redirects",
            "DEFAULT_TARGET_URL": "default_target_url",
            "NAVIGATION_TIMEOUT": "navigation_timeout",
            "TEST_TIMEOUT": "overall_timeout",
            "EVIDENCE_DIR": "evidence_dir",
            # pydantic parses "true"/"false"/"1"/"0"/"yes"/"no"
            "CHECK_ACCEPT_ANY_STATUS": "accept_any_status",
            "TAKE_SCREENSHOTS": "take_screenshots",
        }
        for var, field in simple.items():
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[field] = raw.strip()

        title = env.get("EXPECTED_TITLE")
        if title:
            values["expected_title"] = title

        origins = env.get("CORS_ORIGINS")
        if origins is not None and origins.strip():
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        return cls(**values)
