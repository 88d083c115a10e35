"""Localization helpers."""

from geminirelay.i18n.catalog import SUPPORTED_LANGUAGES, MessageCatalog

__all__ = ["SUPPORTED_LANGUAGES", "MessageCatalog"]
