"""Shared types for generation backends."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

NO_RESPONSE_TEXT = "No response from model."


class GenerationOutcome(str, Enum):
    """Classification of one backend attempt with one credential."""

    SUCCESS = "success"
    QUOTA_EXCEEDED = "quota_exceeded"
    SESSION_FAILED = "session_failed"
    FATAL = "fatal"

    @property
    def is_transient(self) -> bool:
        """Transient outcomes are credential-specific and worth retrying with another key."""
        return self in (GenerationOutcome.QUOTA_EXCEEDED, GenerationOutcome.SESSION_FAILED)


@dataclass
class TransportResponse:
    """Normalized result of a single backend call."""

    outcome: GenerationOutcome
    content: str | None = None
    error: str | None = None


class GenerationError(RuntimeError):
    """A generation request failed and will not be retried."""


class CredentialsExhaustedError(GenerationError):
    """Every credential in the pool was rate-limited or unusable."""
