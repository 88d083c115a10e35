"""Gemini client that fails over across a pool of API keys."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from geminirelay.providers.base import (
    NO_RESPONSE_TEXT,
    CredentialsExhaustedError,
    GenerationError,
    GenerationOutcome,
    TransportResponse,
)
from geminirelay.providers.credentials import CredentialPool
from geminirelay.providers.gemini_transport import GeminiTransport
from geminirelay.session.history import Turn


class GeminiProvider:
    """
    Generation client with transparent credential rotation.

    Every call runs under the pool lock: at most one request is in flight
    against the backend, and a key rotated away by one caller stays rotated
    for the next.
    """

    def __init__(
        self,
        pool: CredentialPool,
        chat_model: str = "gemini-2.5-flash-lite",
        vision_model: str = "gemini-2.5-flash",
        document_model: str = "gemini-2.5-flash",
        transport: GeminiTransport | None = None,
    ):
        self.pool = pool
        self.chat_model = chat_model
        self.vision_model = vision_model
        self.document_model = document_model
        self.transport = transport or GeminiTransport()
        logger.info(f"Gemini client initialized with {pool.size} keys, rotation enabled")

    async def generate(self, turns: Sequence[Turn]) -> str:
        """Continue the conversation: all turns but the last are history."""
        if not turns:
            raise ValueError("empty history")
        history, last = list(turns[:-1]), turns[-1]
        return await self._call_with_rotation(
            "chat",
            lambda key: self.transport.chat(key, self.chat_model, history, last.text),
        )

    async def generate_with_attachment(
        self,
        prompt: str,
        mime_type: str,
        data: bytes,
        model: str | None = None,
    ) -> str:
        """Single-shot multimodal request with ``data`` sent inline."""
        if not data:
            raise ValueError("attachment data is empty")
        if not mime_type:
            raise ValueError("attachment mime type is empty")
        target = model or self.vision_model
        return await self._call_with_rotation(
            "attachment",
            lambda key: self.transport.generate(key, target, prompt, mime_type, data),
        )

    async def generate_with_document(self, prompt: str, mime_type: str, data: bytes) -> str:
        return await self.generate_with_attachment(prompt, mime_type, data, model=self.document_model)

    async def _call_with_rotation(
        self,
        label: str,
        call: Callable[[str], Awaitable[TransportResponse]],
    ) -> str:
        async with self.pool.lock:
            for _ in range(self.pool.size):
                index = self.pool.cursor
                result = await call(self.pool.current)

                if result.outcome is GenerationOutcome.SUCCESS:
                    return result.content or NO_RESPONSE_TEXT

                if result.outcome.is_transient:
                    logger.warning(
                        f"Gemini {label} request with key index {index} failed "
                        f"({result.outcome.value}): {result.error}. Rotating to next key."
                    )
                    self.pool.rotate()
                    continue

                logger.error(f"Gemini {label} request with key index {index} failed: {result.error}")
                raise GenerationError(result.error or "Gemini request failed")

        raise CredentialsExhaustedError("all Gemini API keys are rate-limited or invalid")
