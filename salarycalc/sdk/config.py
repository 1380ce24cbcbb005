"""Configuration management for Salary Calc.

Configuration is split into two files:

1. settings.json - Machine-specific settings
   - rules_base: directory or http(s) URL holding rule documents
   - diagnostics: tax class diagnostics mode (runtime, load, off)
   - strict_diagnostics: raise instead of warn on tax class findings

2. profile.yaml - User's calculation defaults
   - country, year, tax_class, region, children_count,
     salary_period, salary_months

Config directory resolution:
1. SALARY_CALC_CONFIG_PATH environment variable (if set)
2. ~/.config/salary-calc/ (XDG_CONFIG_HOME fallback)

Rule base resolution:
1. SALARY_CALC_RULES_BASE environment variable
2. settings.json "rules_base" key
3. Rule documents shipped with the package
"""

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .rules.repository import RuleRepository, get_tax_rules_dir


APP_NAME = "salary-calc"
SETTINGS_FILENAME = "settings.json"
PROFILE_FILENAME = "profile.yaml"

SETTING_KEYS = ("rules_base", "diagnostics", "strict_diagnostics")
DIAGNOSTICS_MODES = ("runtime", "load", "off")


class ProfileValidationError(Exception):
    """Raised when profile.yaml holds unknown keys or bad values."""
    pass


class ProfileDefaults(BaseModel):
    """Calculation defaults stored in profile.yaml."""

    model_config = ConfigDict(extra="forbid")

    country: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2999)
    tax_class: Optional[str] = None
    region: Optional[str] = None
    children_count: int = Field(default=0, ge=0)
    salary_period: Literal["monthly", "yearly"] = "monthly"
    salary_months: Optional[float] = Field(default=None, ge=1)


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Resolution order:
    1. SALARY_CALC_CONFIG_PATH environment variable
    2. ~/.config/salary-calc/ (XDG_CONFIG_HOME)

    Returns:
        Path to the configuration directory
    """
    env_path = os.environ.get("SALARY_CALC_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / APP_NAME


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def get_profile_path() -> Path:
    """Get the path to profile.yaml (may not exist yet)."""
    return get_config_dir() / PROFILE_FILENAME


def load_settings() -> dict:
    """Load machine-specific settings from settings.json.

    Returns:
        Settings dictionary (empty dict if file doesn't exist)
    """
    settings_file = get_settings_path()

    if not settings_file.exists():
        return {}

    with open(settings_file, "r") as f:
        return json.load(f)


def save_settings(settings: dict) -> Path:
    """Save machine-specific settings to settings.json.

    Returns:
        Path to the saved settings file
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    settings_file = config_dir / SETTINGS_FILENAME

    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2)

    return settings_file


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value from settings.json."""
    return load_settings().get(key, default)


def set_setting(key: str, value: Any) -> Path:
    """Set a setting value in settings.json.

    Raises:
        ValueError: Unknown key, or a diagnostics value outside runtime/load/off
    """
    if key not in SETTING_KEYS:
        raise ValueError(f"Unknown setting '{key}'. Valid settings: {', '.join(SETTING_KEYS)}")
    if key == "diagnostics" and value not in DIAGNOSTICS_MODES:
        raise ValueError(f"Invalid diagnostics mode '{value}'. Use one of: {', '.join(DIAGNOSTICS_MODES)}")

    settings = load_settings()
    settings[key] = value
    return save_settings(settings)


def clear_setting(key: str) -> bool:
    """Remove a setting. Returns True if it was set."""
    settings = load_settings()
    if key not in settings:
        return False
    del settings[key]
    save_settings(settings)
    return True


def load_profile() -> ProfileDefaults:
    """Load calculation defaults from profile.yaml.

    Returns:
        ProfileDefaults (all defaults if the file doesn't exist)

    Raises:
        ProfileValidationError: Invalid YAML, not a mapping, or failed validation
    """
    profile_path = get_profile_path()

    if not profile_path.exists():
        return ProfileDefaults()

    try:
        with open(profile_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ProfileValidationError(f"Invalid YAML in {profile_path}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileValidationError(
            f"Profile must be a YAML dictionary, got {type(data).__name__}"
        )

    try:
        return ProfileDefaults.model_validate(data)
    except ValidationError as e:
        raise ProfileValidationError(f"Invalid profile {profile_path}:\n{e}") from e


def save_profile(profile: ProfileDefaults) -> Path:
    """Save calculation defaults to profile.yaml (unset values are omitted)."""
    path = get_profile_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(profile.model_dump(exclude_none=True), f, default_flow_style=False, sort_keys=False)

    return path


def set_profile_value(key: str, value: Any) -> Path:
    """Validate and store one profile default.

    Raises:
        ProfileValidationError: Unknown key or invalid value
    """
    data = load_profile().model_dump()
    data[key] = value
    try:
        profile = ProfileDefaults.model_validate(data)
    except ValidationError as e:
        raise ProfileValidationError(f"Invalid value for '{key}':\n{e}") from e
    return save_profile(profile)


def get_rules_base() -> str:
    """Resolve where rule documents are fetched from.

    Resolution order:
    1. SALARY_CALC_RULES_BASE environment variable
    2. settings.json "rules_base"
    3. Shipped tax_rules directory
    """
    env_base = os.environ.get("SALARY_CALC_RULES_BASE")
    if env_base:
        return env_base

    configured = get_setting("rules_base")
    if configured:
        return str(configured)

    return str(get_tax_rules_dir())


def get_diagnostics() -> tuple[str, bool]:
    """Effective (diagnostics mode, strict) from settings.json."""
    settings = load_settings()
    mode = settings.get("diagnostics") or "runtime"
    if mode not in DIAGNOSTICS_MODES:
        mode = "runtime"
    return mode, bool(settings.get("strict_diagnostics", False))


def make_repository() -> RuleRepository:
    """Build a RuleRepository from the effective settings.

    With diagnostics "load", documents are linted as they are loaded.
    """
    mode, strict = get_diagnostics()
    return RuleRepository(
        base=get_rules_base(),
        lint_on_load=(mode == "load"),
        strict=strict,
    )
