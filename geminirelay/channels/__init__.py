"""Chat channels module."""

from geminirelay.channels.base import BaseChannel
from geminirelay.channels.manager import ChannelManager

__all__ = ["BaseChannel", "ChannelManager"]
