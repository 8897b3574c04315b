"""
Join-time subscription check.

For each user joining a managed chat: pass if they are an active member of
at least one linked chat, otherwise restrict them and post one notice that
names the linked chats and points at /refresh.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from ...contracts.v1 import ChatRef, JoinEvent, UserRef
from ...kernel.link_store import LinkStore
from .adapters.base import ChatPlatform, PlatformError
from .commands import format_join_notice
from .membership import MembershipOracle
from .restriction import RestrictionController, RestrictionError

logger = logging.getLogger("linkguard.guard")


@dataclass
class JoinOutcome:
    passed: List[UserRef] = field(default_factory=list)
    failed: List[UserRef] = field(default_factory=list)


async def resolve_chats(platform: ChatPlatform, chat_ids: Sequence[Union[int, str]]) -> List[ChatRef]:
    """Look up chats for display; a failed lookup degrades to a bare id."""

    async def one(cid: Union[int, str]) -> ChatRef:
        try:
            return await platform.get_chat(cid)
        except PlatformError as e:
            logger.warning(f"[resolve_chats] getChat failed: {e}", extra={"chat_id": cid})
            if isinstance(cid, int):
                return ChatRef(id=cid)
            return ChatRef(id=0, title=str(cid))

    return list(await asyncio.gather(*(one(cid) for cid in chat_ids)))


class JoinGuard:
    def __init__(
        self,
        store: LinkStore,
        platform: ChatPlatform,
        oracle: MembershipOracle,
        restrictions: RestrictionController,
        bot_username: str,
    ):
        self.store = store
        self.platform = platform
        self.oracle = oracle
        self.restrictions = restrictions
        self.bot_username = bot_username

    async def handle_join(self, event: JoinEvent) -> JoinOutcome:
        """
        Check every new member of `event.chat`.

        Raises RestrictionError after all restriction calls have settled if
        any of them failed.
        """
        chat_id = event.chat.id
        linked = self.store.get(chat_id)
        if not linked or not event.members:
            return JoinOutcome()

        results = await asyncio.gather(
            *(self.oracle.satisfies_any_of(member.id, linked) for member in event.members)
        )
        outcome = JoinOutcome()
        for member, ok in zip(event.members, results):
            (outcome.passed if ok else outcome.failed).append(member)

        if not outcome.failed:
            return outcome

        logger.info(
            f"[handle_join] {len(outcome.failed)}/{len(event.members)} new member(s) failed the check",
            extra={"op": "join", "chat_id": chat_id},
        )

        linked_chats = await resolve_chats(self.platform, linked)
        notice = format_join_notice(outcome.failed, linked_chats, self.bot_username)
        try:
            await self.platform.send_message(chat_id, notice, reply_to=event.message_id)
        except PlatformError as e:
            # The notice is informational; restriction below still runs.
            logger.warning(f"[handle_join] notice not sent: {e}", extra={"op": "join", "chat_id": chat_id})

        settled = await asyncio.gather(
            *(self.restrictions.set_restricted(chat_id, member.id, True) for member in outcome.failed),
            return_exceptions=True,
        )
        failed_users: List[int] = []
        causes: List[BaseException] = []
        for member, res in zip(outcome.failed, settled):
            if isinstance(res, BaseException):
                logger.error(
                    f"[handle_join] could not restrict member: {res}",
                    extra={"op": "restrict", "chat_id": chat_id, "user_id": member.id},
                )
                failed_users.append(member.id)
                causes.append(res)
        if failed_users:
            raise RestrictionError(chat_id, failed_users, causes)
        return outcome
