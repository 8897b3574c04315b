from __future__ import annotations

import logging
from typing import Sequence

from ...contracts.v1 import ChatPermissions
from .adapters.base import ChatPlatform, PlatformError

logger = logging.getLogger("linkguard.restriction")

DENY_ALL = ChatPermissions.deny_all()
ALLOW_ALL = ChatPermissions.allow_all()


class RestrictionError(RuntimeError):
    """Restricting or unrestricting one or more members failed."""

    def __init__(self, chat_id: int, user_ids: Sequence[int], causes: Sequence[BaseException]):
        users = ", ".join(str(u) for u in user_ids)
        reasons = "; ".join(str(c) for c in causes)
        super().__init__(f"restriction failed in chat {chat_id} for user(s) {users}: {reasons}")
        self.chat_id = chat_id
        self.user_ids = list(user_ids)
        self.causes = list(causes)


class RestrictionController:
    """Pushes the desired restriction state for a (chat, user) pair.

    Nothing is cached: the platform holds the state, and applying the same
    permission set twice is harmless.
    """

    def __init__(self, platform: ChatPlatform):
        self.platform = platform

    async def set_restricted(self, chat_id: int, user_id: int, restricted: bool) -> None:
        permissions = DENY_ALL if restricted else ALLOW_ALL
        try:
            await self.platform.restrict_chat_member(chat_id, user_id, permissions)
        except PlatformError as e:
            raise RestrictionError(chat_id, [user_id], [e]) from e
        logger.info(
            f"[set_restricted] restricted={restricted}",
            extra={"op": "restrict" if restricted else "unrestrict", "chat_id": chat_id, "user_id": user_id},
        )
