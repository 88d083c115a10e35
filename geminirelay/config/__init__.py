"""Configuration module for gemini-relay."""

from geminirelay.config.loader import ConfigError, load_config
from geminirelay.config.schema import Config

__all__ = ["Config", "ConfigError", "load_config"]
