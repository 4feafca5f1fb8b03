import logging
import os
import re
from typing import Any, Dict, Final, Mapping, Optional

import yaml

from .infrastructure.error_handling import ValidationError

logger: Final = logging.getLogger(__name__)

DEFAULT_COMMISSION_RATE: Final[float] = 70.0
COMMISSION_RATE_MIN: Final[float] = 0.0
COMMISSION_RATE_MAX: Final[float] = 100.0

MEDIA_ASSETS_BUCKET: Final[str] = os.getenv("MEDIA_ASSETS_BUCKET", "media-assets")

DRIVE_ROOT_FOLDER_NAME: Final[str] = "EZ Kiosk Ads"
DRIVE_KIOSKS_FOLDER_NAME: Final[str] = "Kiosks"
DRIVE_ACTIVE_FOLDER_NAME: Final[str] = "Active"
DRIVE_ARCHIVE_FOLDER_NAME: Final[str] = "Archive"
DRIVE_LIST_PAGE_SIZE: Final[int] = 200

CURRENT_CAMPAIGN_STATUSES: Final[tuple] = ("active", "pending")
EXPIRED_CAMPAIGN_STATUSES: Final[tuple] = ("completed", "paused")
APPROVED_ASSET_STATUS: Final[str] = "approved"

DEFAULT_TIMEZONE: Final[str] = os.getenv("TIMEZONE") or "America/New_York"

SETTINGS_PATH_DEFAULT: Final[str] = "config/settings.yaml"
SCHEMA_PATH_DEFAULT: Final[str] = "config/schema.settings.yaml"

_TIME_RE: Final = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (FileNotFoundError, yaml.YAMLError, IOError, OSError):
        return {}


def cfg(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def default_commission_rate(settings: Mapping[str, Any]) -> float:
    """Host commission percentage applied when an assignment carries no usable rate."""
    return float(cfg(settings, "payments.default_commission_rate", DEFAULT_COMMISSION_RATE))


def validate_time_string(value: Any) -> str:
    """Validate a 24-hour ``HH:MM`` string and return it normalised to ``HH:MM``."""
    if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
        raise ValidationError(
            "Invalid time format. Please use HH:MM format (24-hour).",
            field="time",
            value=value,
        )
    hours, minutes = value.strip().split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def validate_settings(settings: Dict[str, Any]) -> None:
    if not isinstance(settings, dict):
        raise ValueError("Settings payload must be a dictionary.")

    scheduler_cfg = settings.get("scheduler") or {}
    if not isinstance(scheduler_cfg, dict):
        raise ValueError("Invalid `scheduler` configuration. Expected a mapping.")

    for key in ("upload_interval_minutes", "sync_interval_minutes", "lifecycle_interval_hours"):
        value = scheduler_cfg.get(key)
        if value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"scheduler.{key} must be a positive integer, got {value!r}")

    daily_time = scheduler_cfg.get("daily_upload_time")
    if daily_time is not None:
        try:
            scheduler_cfg["daily_upload_time"] = validate_time_string(daily_time)
        except ValidationError as exc:
            raise ValueError(f"scheduler.daily_upload_time: {exc.message}") from exc

    payments_cfg = settings.get("payments") or {}
    default_rate = payments_cfg.get("default_commission_rate")
    if default_rate is not None:
        try:
            rate = float(default_rate)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"payments.default_commission_rate must be numeric, got {default_rate!r}") from exc
        if not COMMISSION_RATE_MIN <= rate <= COMMISSION_RATE_MAX:
            raise ValueError("payments.default_commission_rate must be within [0, 100]")


def load_settings(settings_path: str = SETTINGS_PATH_DEFAULT, schema_path: Optional[str] = SCHEMA_PATH_DEFAULT) -> Dict[str, Any]:
    settings = load_yaml(settings_path)
    if not settings:
        logger.debug("Config file %s missing or empty, using defaults", settings_path)

    if schema_path:
        schema = load_yaml(schema_path)
        if schema:
            import jsonschema

            try:
                jsonschema.validate(instance=settings, schema=schema)
            except jsonschema.ValidationError as exc:
                raise ValueError(f"Settings do not match schema: {exc.message}") from exc

    validate_settings(settings)
    return settings
