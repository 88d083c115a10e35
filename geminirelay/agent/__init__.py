"""Message dispatch and context assembly."""

from geminirelay.agent.context import ContextBuilder
from geminirelay.agent.dispatcher import DispatchState, Dispatcher

__all__ = ["ContextBuilder", "DispatchState", "Dispatcher"]
