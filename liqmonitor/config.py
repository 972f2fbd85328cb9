# liqmonitor/config.py
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .env import env
from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config.yaml"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

# field name -> environment variable
ENV_KEYS = {
    "endpoint": "TRON_API_URL",
    "api_key": "TRON_API_KEY",
    "contract_address": "MARKET_CONTRACT_ADDRESS",
    "poll_interval_ms": "EVENT_POLLING_INTERVAL",
    "start_watermark": "EVENT_START_TIMESTAMP",
    "page_limit": "EVENT_PAGE_LIMIT",
    "request_timeout_ms": "EVENT_REQUEST_TIMEOUT",
    "dedupe_same_timestamp": "EVENT_DEDUPE_SAME_TIMESTAMP",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "telegram_enabled": "TELEGRAM_ENABLED",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
    "telegram_chat_id": "TELEGRAM_CHAT_ID",
}


class MonitorConfig(BaseModel):
    endpoint: str = "https://api.trongrid.io"
    api_key: Optional[str] = None
    contract_address: str
    poll_interval_ms: int = Field(default=3000, gt=0)
    start_watermark: int = Field(default=0, ge=0)
    page_limit: int = Field(default=200, ge=1, le=200)
    request_timeout_ms: int = Field(default=10_000, gt=0)
    dedupe_same_timestamp: bool = False

    log_level: str = "INFO"
    log_file: Optional[str] = "logs/monitor.log"

    telegram_enabled: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    @field_validator("endpoint")
    @classmethod
    def _strip_endpoint(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v

    @field_validator("contract_address")
    @classmethod
    def _non_empty_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("contract address is empty")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"unknown log level {v!r}")
        return v

    @field_validator("log_file")
    @classmethod
    def _empty_log_file(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def _telegram_credentials(self):
        if self.telegram_enabled and not (self.telegram_bot_token and self.telegram_chat_id):
            raise ValueError("telegram is enabled but TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID are missing")
        return self

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


def _read_yaml(path: Optional[str]) -> Dict[str, Any]:
    """
    Read the `monitor:` and `telegram:` sections of a YAML file.
    - explicit path that does not exist → ConfigurationError
    - default path that does not exist → empty config
    """
    explicit = path is not None
    p = Path(path or DEFAULT_CONFIG_PATH)
    if not p.exists():
        if explicit:
            raise ConfigurationError(f"config file not found: {p}")
        return {}

    try:
        with open(p, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {p}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{p} must contain a mapping at the top level")

    values = dict(raw.get("monitor") or {})
    telegram = raw.get("telegram") or {}
    if "enabled" in telegram:
        values["telegram_enabled"] = telegram["enabled"]
    return values


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> MonitorConfig:
    """
    Build the monitor config: YAML file, then environment variables, then
    explicit overrides (CLI flags). Raises ConfigurationError on anything
    missing or invalid.
    """
    values = _read_yaml(path)

    for field, key in ENV_KEYS.items():
        value = env(key)
        if value is not None:
            values[field] = value

    for field, value in (overrides or {}).items():
        if value is not None:
            values[field] = value

    try:
        return MonitorConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"invalid configuration: {problems}") from e
