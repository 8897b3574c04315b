"""
Membership checks against the chat platform.

A query that fails for any reason (unknown user, bot not in the chat,
transport error) is reported as QUERY_FAILED and counts as "not a member"
for policy decisions.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Iterable, Union

from .adapters.base import ChatPlatform, PlatformError

logger = logging.getLogger("linkguard.membership")


class MembershipStatus(str, Enum):
    MEMBER = "member"
    NOT_MEMBER = "not_member"
    QUERY_FAILED = "query_failed"


class MembershipOracle:
    def __init__(self, platform: ChatPlatform):
        self.platform = platform

    async def check(self, chat_id: Union[int, str], user_id: int) -> MembershipStatus:
        try:
            member = await self.platform.get_chat_member(chat_id, user_id)
        except PlatformError as e:
            logger.debug(
                f"[check] membership query failed: {e}",
                extra={"chat_id": chat_id, "user_id": user_id},
            )
            return MembershipStatus.QUERY_FAILED
        return MembershipStatus.MEMBER if member.is_active else MembershipStatus.NOT_MEMBER

    async def is_active_member(self, chat_id: Union[int, str], user_id: int) -> bool:
        return await self.check(chat_id, user_id) is MembershipStatus.MEMBER

    async def satisfies_any_of(self, user_id: int, chat_ids: Iterable[Union[int, str]]) -> bool:
        """True iff the user is an active member of at least one chat.

        All queries are issued at once and awaited together; there is no
        early exit on the first hit.
        """
        results = await asyncio.gather(*(self.is_active_member(cid, user_id) for cid in chat_ids))
        return any(results)
