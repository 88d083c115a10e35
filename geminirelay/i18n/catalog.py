"""Localized reply strings loaded from JSON locale files."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

LOCALES_DIR = Path(__file__).resolve().parent.parent / "locales"
SUPPORTED_LANGUAGES = ("en", "id")
FALLBACK_LANGUAGE = "en"


class MessageCatalog:
    """Message-id lookup with fallback to English, then to the id itself."""

    def __init__(self, messages: dict[str, dict[str, str]]):
        self._messages = messages

    @classmethod
    def load(
        cls,
        locales_dir: Path = LOCALES_DIR,
        languages: tuple[str, ...] = SUPPORTED_LANGUAGES,
    ) -> "MessageCatalog":
        """Load one ``<lang>.json`` per language. A missing file is a startup error."""
        messages: dict[str, dict[str, str]] = {}
        for lang in languages:
            path = locales_dir / f"{lang}.json"
            messages[lang] = json.loads(path.read_text(encoding="utf-8"))
        logger.info(f"i18n catalog loaded: {', '.join(messages)}")
        return cls(messages)

    def localize(self, lang: str, message_id: str, /, **data: str) -> str:
        template = self._messages.get(lang, {}).get(message_id)
        if template is None:
            template = self._messages.get(FALLBACK_LANGUAGE, {}).get(message_id)
        if template is None:
            logger.warning(f"Missing i18n message '{message_id}' for '{lang}'")
            return message_id
        try:
            return template.format(**data)
        except (KeyError, IndexError) as e:
            logger.warning(f"Bad template data for '{message_id}': {e}")
            return template
