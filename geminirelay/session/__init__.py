"""Conversation history storage."""

from geminirelay.session.history import HISTORY_WINDOW, HistoryStore, Turn

__all__ = ["HISTORY_WINDOW", "HistoryStore", "Turn"]
