"""Process-wide pool of interchangeable API keys."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger


class CredentialPool:
    """
    Ordered API keys with one shared rotation cursor.

    ``lock`` guards the cursor together with the backend call made with the
    current key; callers hold it for their whole retry loop so that every
    rotation is observed by every later call in the same order.
    """

    def __init__(self, keys: Iterable[str]):
        cleaned = [k.strip() for k in keys if k and k.strip()]
        if not cleaned:
            raise ValueError("Credential pool needs at least one API key")
        self._keys: tuple[str, ...] = tuple(cleaned)
        self._cursor = 0
        self.lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> str:
        return self._keys[self._cursor]

    def rotate(self) -> int:
        """Advance the cursor circularly and return the new index."""
        self._cursor = (self._cursor + 1) % len(self._keys)
        logger.info(f"Rotated to next key index: {self._cursor}")
        return self._cursor
