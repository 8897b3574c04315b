"""
Base class for chat platform adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from ....contracts.v1 import ChatMember, ChatPermissions, ChatRef, Update, UserRef


class PlatformError(RuntimeError):
    """A platform API call failed (transport error or an error reply)."""

    def __init__(self, method: str, description: str, error_code: int = 0):
        super().__init__(f"{method}: {description}" + (f" (code {error_code})" if error_code else ""))
        self.method = method
        self.description = description
        self.error_code = error_code


class ChatPlatform(ABC):
    """
    Abstract base class for chat platform adapters.

    Each adapter handles:
    - Connecting and reporting the bot's own identity
    - Receiving updates (joins, text messages)
    - Sending replies
    - Chat / membership lookups and permission changes

    Every call except poll() raises PlatformError on failure.
    """

    platform: str = "unknown"

    @abstractmethod
    async def connect(self) -> UserRef:
        """Verify credentials; returns the bot's own user."""

    async def disconnect(self) -> None:
        """Release platform resources (default: nothing to do)."""

    @abstractmethod
    async def poll(self) -> List[Update]:
        """Fetch the next batch of updates; [] on transient failure."""

    @abstractmethod
    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        """Send an HTML-formatted message, optionally as a reply."""

    @abstractmethod
    async def get_chat(self, target: Union[int, str]) -> ChatRef:
        """Resolve a chat by numeric id or @handle."""

    @abstractmethod
    async def get_chat_member(self, chat_id: Union[int, str], user_id: int) -> ChatMember:
        """Membership record of `user_id` in `chat_id`."""

    @abstractmethod
    async def restrict_chat_member(self, chat_id: int, user_id: int, permissions: ChatPermissions) -> None:
        """Replace the member's permission set in `chat_id`."""
