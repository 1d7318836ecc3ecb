"""
Configuration management.

All configuration keys live here. Values come from a YAML file and may be
overridden by environment variables:

- TORN_API_URL
- TORN_API_KEY (otherwise the key saved by ``login`` is used)
- REVIVE_LOGBOOK_DB
- REVIVE_LOGBOOK_MODE (individual/group)
- REVIVE_LOGBOOK_TIMEZONE (IANA name used for date-range filters)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class TornConfig:
    """Torn API configuration."""

    base_url: str = "https://api.torn.com"
    # Optional; the key stored in the settings collection is used when empty
    api_key: str = ""
    page_size: int = 100
    timeout_seconds: int = 30
    max_retries: int = 3
    backoff_factor: float = 0.5


@dataclass
class ViewConfig:
    """Defaults for the list view."""

    page_size: int = 10
    # IANA timezone for date-range filters; None means the local timezone
    timezone: str | None = None


@dataclass
class Config:
    """Application configuration."""

    torn: TornConfig = field(default_factory=TornConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/revives.db"))
    # Mode used when none has been saved yet
    default_mode: str = "individual"

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        from .view.engine import PAGE_SIZES

        errors: list[str] = []

        if not self.torn.base_url:
            errors.append("torn.base_url is required")
        if not 1 <= self.torn.page_size <= 100:
            errors.append("torn.page_size must be between 1 and 100")
        if self.torn.timeout_seconds <= 0:
            errors.append("torn.timeout_seconds must be positive")
        if self.view.page_size not in PAGE_SIZES:
            errors.append(f"view.page_size must be one of {list(PAGE_SIZES)}")
        if self.default_mode not in ("individual", "group"):
            errors.append("default_mode must be 'individual' or 'group'")

        return errors


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    A missing file yields the defaults (plus environment overrides).
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    torn_data = data.get("torn", {})
    torn = TornConfig(
        base_url=os.environ.get("TORN_API_URL", torn_data.get("base_url", "https://api.torn.com")),
        api_key=os.environ.get("TORN_API_KEY", torn_data.get("api_key", "")),
        page_size=torn_data.get("page_size", 100),
        timeout_seconds=int(torn_data.get("timeout_seconds", 30)),
        max_retries=torn_data.get("max_retries", 3),
        backoff_factor=torn_data.get("backoff_factor", 0.5),
    )

    view_data = data.get("view", {})
    view = ViewConfig(
        page_size=view_data.get("page_size", 10),
        timezone=os.environ.get("REVIVE_LOGBOOK_TIMEZONE", view_data.get("timezone")),
    )

    state_db = os.environ.get("REVIVE_LOGBOOK_DB", data.get("state_db_path", "data/revives.db"))

    return Config(
        torn=torn,
        view=view,
        state_db_path=Path(state_db),
        default_mode=os.environ.get(
            "REVIVE_LOGBOOK_MODE", data.get("default_mode", "individual")
        ),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Revive logbook configuration

torn:
  base_url: "https://api.torn.com"
  api_key: ""              # Leave empty to use the key saved by `revive-logbook login`
  page_size: 100           # Revives per API page (max 100)
  timeout_seconds: 30
  max_retries: 3
  backoff_factor: 0.5

view:
  page_size: 10            # One of 10, 25, 50, 100
  timezone: null           # e.g. "Europe/London"; null uses the local timezone

# Mode used until one is saved: individual (your revives) or group (faction revives)
default_mode: "individual"

# Local cache
state_db_path: "data/revives.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
