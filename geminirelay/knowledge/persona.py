"""Load the persona / knowledge text from a YAML file."""

from __future__ import annotations

from pathlib import Path

import yaml
from loguru import logger


def load_persona(path: str | Path | None) -> str:
    """
    Read the ``knowledge`` key of a YAML file.

    Any problem (no path, unreadable file, invalid YAML, missing key) yields
    an empty persona so the bot still runs without one.
    """
    if not path:
        logger.info("Knowledge file path is not provided, skipping")
        return ""

    try:
        raw = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not read knowledge file at {path}: {e}")
        return ""

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Could not parse knowledge YAML file: {e}")
        return ""

    if not isinstance(data, dict) or not isinstance(data.get("knowledge"), str):
        logger.warning(f"Knowledge file {path} has no 'knowledge' text entry")
        return ""

    logger.info("Knowledge base loaded successfully")
    return data["knowledge"].strip()
