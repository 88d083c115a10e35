"""Gemini SDK transport adapter.

This module isolates google-genai interaction from the rotation logic: every
call opens a client for exactly one API key and reports a structured
``GenerationOutcome`` instead of raising.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from google import genai
from google.genai import errors, types
from loguru import logger

from geminirelay.providers.base import GenerationOutcome, TransportResponse
from geminirelay.session.history import Turn

QUOTA_STATUSES = {"RESOURCE_EXHAUSTED"}
QUOTA_CODES = {429}


def classify_error(error: Exception) -> GenerationOutcome:
    """Map an SDK exception to a retry decision."""
    if isinstance(error, errors.APIError):
        status = (getattr(error, "status", None) or "").upper()
        if error.code in QUOTA_CODES or status in QUOTA_STATUSES:
            return GenerationOutcome.QUOTA_EXCEEDED
    return GenerationOutcome.FATAL


def extract_text(response: Any) -> str | None:
    """Text of the response as joined by the SDK (thought parts excluded), or None if blank."""
    text = getattr(response, "text", None)
    return text if isinstance(text, str) and text.strip() else None


def to_content(turn: Turn) -> types.Content:
    return types.Content(role=turn.role, parts=[types.Part(text=turn.text)])


class GeminiTransport:
    """Thin adapter around the google-genai async client."""

    def _open_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    @staticmethod
    async def _close_client(client: Any) -> None:
        closer = getattr(getattr(client, "aio", None), "aclose", None)
        if not callable(closer):
            return
        try:
            await closer()
        except Exception as e:
            logger.debug(f"Gemini client close failed: {e}")

    async def chat(
        self,
        api_key: str,
        model: str,
        history: Sequence[Turn],
        message: str,
    ) -> TransportResponse:
        """Continue a chat session seeded with ``history`` by sending ``message``."""
        try:
            client = self._open_client(api_key)
        except Exception as e:
            return TransportResponse(GenerationOutcome.SESSION_FAILED, error=str(e))

        try:
            session = client.aio.chats.create(
                model=model,
                history=[to_content(t) for t in history],
            )
            response = await session.send_message(message)
        except Exception as e:
            return TransportResponse(classify_error(e), error=str(e))
        finally:
            await self._close_client(client)

        return TransportResponse(GenerationOutcome.SUCCESS, content=extract_text(response))

    async def generate(
        self,
        api_key: str,
        model: str,
        prompt: str,
        mime_type: str,
        data: bytes,
    ) -> TransportResponse:
        """Single-shot generation with one inline binary part followed by the prompt."""
        try:
            client = self._open_client(api_key)
        except Exception as e:
            return TransportResponse(GenerationOutcome.SESSION_FAILED, error=str(e))

        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=[
                    types.Part.from_bytes(data=data, mime_type=mime_type),
                    types.Part(text=prompt),
                ],
            )
        except Exception as e:
            return TransportResponse(classify_error(e), error=str(e))
        finally:
            await self._close_client(client)

        return TransportResponse(GenerationOutcome.SUCCESS, content=extract_text(response))
