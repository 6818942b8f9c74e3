"""Engine settings with Pydantic v2 validation.

Loads and validates a ``budgetwatch.yaml`` file into a typed
:class:`EngineSettings` object.  Every tunable constant used by the refresh
cycle lives here so that deployments can override it without code changes.

Example
-------
>>> loader = SettingsLoader()
>>> settings = loader.load_string("forecast_change_ratio: 0.2")
>>> settings.forecast_change_ratio
0.2
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_FORECAST_CHANGE_RATIO = 0.10
DEFAULT_FORECAST_FRESHNESS_HOURS = 36
DEFAULT_NOTIFICATION_TTL_DAYS = 31
DEFAULT_WRITE_BATCH_SIZE = 250
DEFAULT_EXPIRED_GRACE_HOURS = 168


class EngineSettings(BaseModel):
    """Top-level settings for the utilization and forecast engine.

    Attributes
    ----------
    forecast_change_ratio:
        Minimum shift of the full-amount forecast date, as a fraction of the
        budget duration, before a forecast alert is re-sent.
    forecast_freshness_hours:
        Forecast rows older than this many hours are not used.
    notification_ttl_days:
        Days after creation at which a notification record expires.
    write_batch_size:
        Maximum number of updates committed in one atomic batch.
    expired_grace_hours:
        Hours after a fixed budget's end period during which it is still
        refreshed.
    production:
        When ``False``, recipients outside ``internal_domains`` are dropped.
    internal_domains:
        Email domains that may receive notifications outside production.
    internal_customer_ids:
        Customers whose chat channels receive alerts outside production.
    console_domain:
        Host used when building links back to a budget.
    max_workers:
        Worker threads used by batch refreshes.
    """

    model_config = {"extra": "allow"}

    forecast_change_ratio: float = Field(default=DEFAULT_FORECAST_CHANGE_RATIO, gt=0, le=1)
    forecast_freshness_hours: int = Field(default=DEFAULT_FORECAST_FRESHNESS_HOURS, ge=1)
    notification_ttl_days: int = Field(default=DEFAULT_NOTIFICATION_TTL_DAYS, ge=1)
    write_batch_size: int = Field(default=DEFAULT_WRITE_BATCH_SIZE, ge=1, le=500)
    expired_grace_hours: int = Field(default=DEFAULT_EXPIRED_GRACE_HOURS, ge=0)
    production: bool = Field(default=True)
    internal_domains: list[str] = Field(default_factory=list)
    internal_customer_ids: list[str] = Field(default_factory=list)
    console_domain: str = Field(default="console.budgetwatch.local")
    max_workers: int = Field(default=1, ge=1, le=64)

    @field_validator("internal_domains")
    @classmethod
    def normalise_domains(cls, values: list[str]) -> list[str]:
        return [v.strip().lower().lstrip("@") for v in values if v.strip()]


class SettingsLoader:
    """Loads and validates budgetwatch YAML settings."""

    def load(self, config_path: Path) -> EngineSettings:
        """Load and validate a settings YAML file.

        Raises
        ------
        FileNotFoundError:
            When the file does not exist.
        pydantic.ValidationError:
            When the YAML content fails validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"budgetwatch settings not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return EngineSettings.model_validate(raw)

    def load_string(self, yaml_content: str) -> EngineSettings:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return EngineSettings.model_validate(raw)

    def defaults(self) -> EngineSettings:
        """Return settings with all defaults applied."""
        return EngineSettings()
