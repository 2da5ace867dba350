"""Configuration management for the watchdog daemon."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .cron import build_cron_trigger
from .errors import ConfigurationError


logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/arewedown.yaml"
DEFAULT_CHECK = "system/httpcheck"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def make_safe_name(name: str) -> str:
    """Filesystem-safe identifier for a watcher name."""
    safe = _UNSAFE_CHARS_RE.sub("_", str(name or "").strip()).strip(".")
    return safe or "_"


class WatcherConfig(BaseModel):
    """One watcher entry. Unknown keys are kept as target parameters for the check plugin."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(description="Display name, defaults to the key in the watchers mapping")
    safe_name: str = Field(default="", description="Filesystem-safe identifier derived from name")
    interval: str = Field(default="* * * * *", description="Cron expression, optionally with a leading seconds field")
    test: str = Field(default=DEFAULT_CHECK, description="Check plugin identifier")
    enabled: bool = Field(default=True, description="Disabled watchers never run their check")
    recipients: str = Field(default="", description="Comma-separated recipient names")
    url: Optional[str] = Field(default=None, description="Target URL, used by most check plugins")

    @model_validator(mode="before")
    @classmethod
    def _derive_safe_name(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("safe_name"):
            data = {**data, "safe_name": make_safe_name(data["safe_name"])}
        elif data.get("name"):
            data = {**data, "safe_name": make_safe_name(data["name"])}
        return data

    @field_validator("recipients", mode="before")
    @classmethod
    def _recipients_must_be_string(cls, value: Any) -> Any:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("recipients list must be a string")
        return value

    @field_validator("interval")
    @classmethod
    def _interval_is_valid_cron(cls, value: str) -> str:
        try:
            build_cron_trigger(value)
        except ValueError as e:
            raise ValueError(f"Invalid cron expression {value!r}: {e}") from None
        return value

    @property
    def target_params(self) -> dict[str, Any]:
        params: dict[str, Any] = dict(self.model_extra or {})
        if self.url is not None:
            params["url"] = self.url
        return params


class RecipientConfig(BaseModel):
    """Entry in the recipient directory."""

    address: str = Field(description="Email address or chat id, depending on channel")
    channels: list[str] = Field(default_factory=lambda: ["email"], description="Channels this recipient accepts")

    @model_validator(mode="before")
    @classmethod
    def _legacy_email_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and "address" not in data and data.get("email"):
            data = {**data, "address": data["email"]}
        return data


class SmtpConfig(BaseModel):
    """SMTP transport settings."""

    model_config = ConfigDict(populate_by_name=True)

    host: str
    port: int = 25
    user: Optional[str] = None
    password: Optional[str] = None
    sender: str = Field(default="arewedown@localhost", alias="from")
    timeout: float = 30.0


class SendgridConfig(BaseModel):
    """SendGrid API transport settings."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str
    sender: str = Field(alias="from")
    endpoint: str = "https://api.sendgrid.com/v3/mail/send"


class TelegramConfig(BaseModel):
    """Telegram Bot API transport settings."""

    bot_token: str
    api_base_url: str = "https://api.telegram.org"


class AppConfig(BaseModel):
    """Main configuration, constructed once at startup and passed explicitly."""

    logs: str = Field(default="logs", description="Root directory of the status store")
    port: int = Field(default=3000, description="Port of the read-only status API")
    log_level: str = Field(default="INFO", description="Logging level")
    onstart: Optional[str] = Field(default=None, description="Shell command executed before watchers start")
    onstart_ignore_error: bool = Field(default=False, description="Continue startup when onstart fails")

    watchers: dict[str, WatcherConfig] = Field(default_factory=dict)
    recipients: dict[str, RecipientConfig] = Field(default_factory=dict)

    smtp: Optional[SmtpConfig] = None
    sendgrid: Optional[SendgridConfig] = None
    telegram: Optional[TelegramConfig] = None

    @field_validator("watchers", mode="before")
    @classmethod
    def _name_watchers_from_keys(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("watchers must be a mapping")
        named: dict[str, Any] = {}
        for key, entry in value.items():
            if entry is None:
                entry = {}
            if isinstance(entry, dict):
                entry = {"name": str(key), **entry}
            named[str(key)] = entry
        return named

    @field_validator("recipients", mode="before")
    @classmethod
    def _recipients_default(cls, value: Any) -> Any:
        return {} if value is None else value


def ensure_unique_watchers(watchers: Iterable[WatcherConfig]) -> None:
    """Raise ConfigurationError when two watchers share a name or safe-name."""
    names: set[str] = set()
    safe_names: set[str] = set()
    for watcher in watchers:
        if watcher.name in names:
            raise ConfigurationError(f'Duplicate watcher name "{watcher.name}"')
        if watcher.safe_name in safe_names:
            raise ConfigurationError(
                f'Watcher "{watcher.name}" has safe-name "{watcher.safe_name}" which is already in use'
            )
        names.add(watcher.name)
        safe_names.add(watcher.safe_name)


def parse_config(data: dict[str, Any]) -> AppConfig:
    try:
        config = AppConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    ensure_unique_watchers(config.watchers.values())
    return config


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from a YAML file plus environment overrides."""
    if config_path is None:
        config_path = os.getenv("AREWEDOWN_CONFIG", DEFAULT_CONFIG_PATH)

    config_data: dict[str, Any] = {}

    path = Path(config_path)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
    else:
        logger.warning("Config file not found, using defaults", path=str(path))

    env_overrides = {
        "logs": os.getenv("AREWEDOWN_LOGS"),
        "port": os.getenv("PORT"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value

    config = parse_config(config_data)
    logger.info("Loaded configuration", path=str(path), watchers=len(config.watchers))
    return config
