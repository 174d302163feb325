"""Migrator settings with defaults.

All defaults are defined here in the schema - no external system owns defaults.
Uses Pydantic Settings for automatic env var loading.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app_migrator.core.config.enums import LogLevel, MigrationDirection

DEFAULT_CONCURRENCY_LIMIT = 5
DEFAULT_RETRY_PAUSE_SECONDS = 3.0
DEFAULT_RETRY_TIMEOUT_SECONDS = 60.0


class ControlPlaneConfig(BaseModel):
    """Connection details for one control-plane API."""

    api_url: str = Field("", description="Base URL of the control-plane API")
    token: Optional[str] = Field(None, description="Bearer token used for every request")
    verify_ssl: bool = Field(True, description="Verify TLS certificates")
    request_timeout_seconds: float = Field(30.0, gt=0, description="Per-request HTTP timeout")


class MigratorSettings(BaseSettings):
    """Migrator configuration with automatic env var loading.

    Env vars use double underscore as delimiter:
        APP_MIGRATOR__CONCURRENCY_LIMIT=10
        APP_MIGRATOR__SOURCE__API_URL=https://api.source.example.com
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_MIGRATOR__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    concurrency_limit: int = Field(
        DEFAULT_CONCURRENCY_LIMIT, ge=1, description="Max items processed at once"
    )
    retry_pause_seconds: float = Field(
        DEFAULT_RETRY_PAUSE_SECONDS, gt=0, description="Fixed pause between retries"
    )
    retry_timeout_seconds: float = Field(
        DEFAULT_RETRY_TIMEOUT_SECONDS, gt=0, description="Total retry budget per remote call"
    )

    export_dir: Path = Field(Path("."), description="Directory exported apps are written to")
    ledger_path: Optional[Path] = Field(
        None, description="Change ledger file (defaults to <export_dir>/metadata.json)"
    )

    log_level: LogLevel = Field(LogLevel.INFO, description="Minimum level written to the log")
    log_file: Path = Field(Path("/tmp/app-migrator.log"), description="Log destination")
    debug: bool = Field(False, description="Force DEBUG logging")

    source: ControlPlaneConfig = Field(default_factory=ControlPlaneConfig)
    target: ControlPlaneConfig = Field(default_factory=ControlPlaneConfig)

    included_orgs: List[str] = Field(default_factory=list)
    excluded_orgs: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_config_logic(self):
        """Validate that config combinations make sense."""
        if self.retry_timeout_seconds < self.retry_pause_seconds:
            raise ValueError(
                "Invalid config: retry_timeout_seconds "
                f"({self.retry_timeout_seconds}) is shorter than retry_pause_seconds "
                f"({self.retry_pause_seconds})"
            )

        overlap = set(self.included_orgs) & set(self.excluded_orgs)
        if overlap:
            raise ValueError(f"Org conflict: {sorted(overlap)} both included and excluded")

        return self

    def control_plane(self, direction: MigrationDirection) -> ControlPlaneConfig:
        """Endpoint settings for the source or target control plane."""
        if MigrationDirection(direction) is MigrationDirection.SOURCE:
            return self.source
        return self.target

    @property
    def effective_ledger_path(self) -> Path:
        """Ledger location, falling back to the export directory."""
        return self.ledger_path or self.export_dir / "metadata.json"

    @property
    def effective_log_level(self) -> LogLevel:
        """Log level after applying the debug override."""
        return LogLevel.DEBUG if self.debug else self.log_level

    def is_org_selected(self, org_name: str) -> bool:
        """Whether an org passes the include/exclude filters."""
        if org_name in self.excluded_orgs:
            return False
        return not self.included_orgs or org_name in self.included_orgs

    def merge_with(self, overrides: Optional[dict]) -> "MigratorSettings":
        """Merge these settings with an overrides dict, returning new settings.

        Args:
            overrides: Dict with partial config to merge. None values are ignored.

        Returns:
            New MigratorSettings with overrides applied.
        """
        if not overrides:
            return self

        current = self.model_dump()
        _deep_merge(current, overrides)
        return MigratorSettings(**current)


def _deep_merge(base: dict, overrides: dict) -> None:
    """Deep merge overrides into base dict, ignoring None values."""
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and key in base and isinstance(base[key], dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
