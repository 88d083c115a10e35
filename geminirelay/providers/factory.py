"""Provider factory to keep provider construction isolated from CLI logic."""

from __future__ import annotations

from loguru import logger

from geminirelay.config.schema import Config
from geminirelay.providers.credentials import CredentialPool
from geminirelay.providers.gemini_provider import GeminiProvider


def create_provider(config: Config) -> GeminiProvider:
    """Create the Gemini provider from config."""
    try:
        pool = CredentialPool(config.gemini.api_keys)
    except ValueError as e:
        raise RuntimeError(
            "No Gemini API key configured. Set GEMINI_API_KEYS in .env or the environment"
        ) from e

    logger.debug(
        f"Models: chat={config.gemini.chat_model} vision={config.gemini.vision_model} "
        f"document={config.gemini.document_model}"
    )
    return GeminiProvider(
        pool=pool,
        chat_model=config.gemini.chat_model,
        vision_model=config.gemini.vision_model,
        document_model=config.gemini.document_model,
    )
