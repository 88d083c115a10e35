"""Load configuration from the environment and an optional .env file."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from dotenv import load_dotenv
from loguru import logger

from geminirelay.config.schema import Config


class ConfigError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


def _parse_float(env: Mapping[str, str], name: str) -> float | None:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}: '{raw}' is not a number")
        return None


def _collect(env: Mapping[str, str]) -> dict[str, Any]:
    """Map environment variables onto the nested config layout."""
    data: dict[str, Any] = {
        "gemini": {"api_keys": env.get("GEMINI_API_KEYS", "")},
        "knowledge": {
            "enabled": env.get("KNOWLEDGE_ENABLED", "").strip().lower() == "true",
            "file": env.get("KNOWLEDGE_FILE", "").strip(),
        },
        "store": {"menu_image_path": env.get("MENU_IMAGE_PATH", "").strip()},
        "telegram": {"token": env.get("TELEGRAM_BOT_TOKEN", "").strip()},
    }

    for var, field in (
        ("GEMINI_CHAT_MODEL", "chat_model"),
        ("GEMINI_VISION_MODEL", "vision_model"),
        ("GEMINI_DOCUMENT_MODEL", "document_model"),
    ):
        if value := env.get(var, "").strip():
            data["gemini"][field] = value

    for var, field in (("STORE_LATITUDE", "latitude"), ("STORE_LONGITUDE", "longitude")):
        value = _parse_float(env, var)
        if value is not None:
            data["store"][field] = value

    if proxy := env.get("TELEGRAM_PROXY", "").strip():
        data["telegram"]["proxy"] = proxy
    timeout = _parse_float(env, "TELEGRAM_SEND_TIMEOUT")
    if timeout is not None and timeout > 0:
        data["telegram"]["send_timeout"] = timeout

    if db_path := env.get("DATABASE_PATH", "").strip():
        data["database_path"] = db_path
    return data


def load_config(env: Mapping[str, str] | None = None, dotenv_path: str | None = None) -> Config:
    """
    Build the configuration.

    Args:
        env: Explicit environment mapping. Defaults to ``os.environ`` after
            loading ``.env``.
        dotenv_path: Optional path of the .env file to load.

    Raises:
        ConfigError: If no Gemini API key is configured.
    """
    if env is None:
        if not load_dotenv(dotenv_path):
            logger.info("No .env file found, reading from environment variables")
        env = os.environ

    config = Config.model_validate(_collect(env))
    if not config.gemini.api_keys:
        raise ConfigError("GEMINI_API_KEYS is not set or empty")

    logger.info(f"Loaded {len(config.gemini.api_keys)} Gemini API keys")
    return config
