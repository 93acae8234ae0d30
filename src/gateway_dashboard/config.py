# src/gateway_dashboard/config.py

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .network import is_valid_gateway_ip, resolve_gateway_ip

log = logging.getLogger(__name__)

# .env is at the project root, two levels up from src/gateway_dashboard/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=False)


class Settings(BaseSettings):
    # === Gateway ===
    DEFAULT_GATEWAY_IP: str = "192.168.12.1"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    HEALTH_TIMEOUT_SECONDS: float = 3.0

    # === Dashboard server ===
    HOST: str = "127.0.0.1"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # === Client side ===
    DASHBOARD_URL: str = "http://127.0.0.1:3000"
    CLIENT_STATE_FILE: Path = Path.home() / ".config" / "gateway-dashboard" / "state.json"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @field_validator("DEFAULT_GATEWAY_IP")
    @classmethod
    def check_default_gateway_ip(cls, v: str) -> str:
        # The fallback address is what every rejected address turns into,
        # so it has to pass the same checks itself.
        if not is_valid_gateway_ip(v):
            raise ValueError(f"DEFAULT_GATEWAY_IP must be a private IPv4 address, got {v!r}")
        return resolve_gateway_ip(v, v)

    @field_validator("GATEWAY_TIMEOUT_SECONDS", "HEALTH_TIMEOUT_SECONDS")
    @classmethod
    def check_positive_timeout(cls, v: Any) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        level = str(v or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown LOG_LEVEL {v!r}")
        return level


try:
    settings = Settings()
except Exception as e:
    log.error("Error instantiating Settings: %s", e)
    raise
