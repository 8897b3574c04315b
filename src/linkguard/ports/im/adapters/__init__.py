"""
Chat platform adapters.

- Telegram: long-poll getUpdates over the Bot API
"""

from .base import ChatPlatform, PlatformError
from .telegram import TelegramAdapter

__all__ = ["ChatPlatform", "PlatformError", "TelegramAdapter"]
