from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import CroniterBadCronError, croniter
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_API_URL = "https://api.vercel.com"
DEFAULT_TOKEN_ENV = "VERCEL_TOKEN"
MAX_PAGE_SIZE = 100


class ConfigurationError(Exception):
    """Raised when the backup configuration or credential is invalid."""


class SchedulerConfig(BaseModel):
    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = True

    @field_validator("cron")
    def _validate_cron(cls, value: str) -> str:  # noqa: N805
        try:
            croniter(value, datetime.now())
        except (CroniterBadCronError, ValueError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    def _validate_timezone(cls, value: str) -> str:  # noqa: N805
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


class BackupConfig(BaseModel):
    api_url: str = Field(default=DEFAULT_API_URL, description="Base URL of the Vercel REST API.")
    token_env: str = Field(default=DEFAULT_TOKEN_ENV, description="Environment variable holding the bearer token.")
    output_dir: Path = Field(default=Path("backups"), description="Root directory for backup runs.")
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds.")
    file_naming: Literal["name", "id"] = "name"
    on_error: Literal["abort", "continue"] = "abort"
    log_level: str = "INFO"
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("output_dir")
    def _expand_output_dir(cls, value: Path) -> Path:  # noqa: N805
        return value.expanduser()

    @field_validator("log_level")
    def _normalize_log_level(cls, value: str) -> str:  # noqa: N805
        return value.upper()

    def resolved_token(self) -> Optional[str]:
        return os.getenv(self.token_env) or None

    def require_token(self) -> str:
        token = self.resolved_token()
        if not token:
            raise ConfigurationError(
                f"API token missing: set the {self.token_env} environment variable."
            )
        return token


def load_config(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> BackupConfig:
    """Build the configuration from an optional YAML file plus CLI overrides.

    A ``.env`` file in the working directory is loaded first so the token can
    live there instead of the shell environment.
    """
    load_dotenv(find_dotenv(usecwd=True))

    raw: Dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
        raw.update(loaded)

    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value

    try:
        return BackupConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
