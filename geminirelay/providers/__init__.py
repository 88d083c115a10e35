"""Generation provider module."""

from geminirelay.providers.base import (
    NO_RESPONSE_TEXT,
    CredentialsExhaustedError,
    GenerationError,
    GenerationOutcome,
    TransportResponse,
)
from geminirelay.providers.credentials import CredentialPool
from geminirelay.providers.factory import create_provider
from geminirelay.providers.gemini_provider import GeminiProvider

__all__ = [
    "NO_RESPONSE_TEXT",
    "CredentialPool",
    "CredentialsExhaustedError",
    "GeminiProvider",
    "GenerationError",
    "GenerationOutcome",
    "TransportResponse",
    "create_provider",
]
