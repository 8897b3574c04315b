from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ...contracts.v1 import ChatRef, UserRef
from ...kernel.link_store import LinkStore
from .adapters.base import ChatPlatform, PlatformError
from .membership import MembershipOracle
from .restriction import RestrictionController, RestrictionError

logger = logging.getLogger("linkguard.refresh")


@dataclass
class RefreshStatus:
    chat: ChatRef
    satisfied: bool
    error: Optional[str] = None

    @property
    def label(self) -> str:
        if self.error:
            return "Failed to update, please try again later"
        return "Unrestricted" if self.satisfied else "Restricted"


class RefreshReconciler:
    """Re-evaluates a user's standing in every managed chat they are in.

    Lets a restricted user lift the restriction right after joining a
    linked chat instead of waiting for a new join event.
    """

    def __init__(
        self,
        store: LinkStore,
        platform: ChatPlatform,
        oracle: MembershipOracle,
        restrictions: RestrictionController,
    ):
        self.store = store
        self.platform = platform
        self.oracle = oracle
        self.restrictions = restrictions

    async def refresh(self, user: UserRef) -> List[RefreshStatus]:
        managed = sorted(self.store.list())
        results = await asyncio.gather(*(self._refresh_chat(cid, user) for cid in managed))
        return [r for r in results if r is not None]

    async def _refresh_chat(self, chat_id: int, user: UserRef) -> Optional[RefreshStatus]:
        if not await self.oracle.is_active_member(chat_id, user.id):
            return None

        satisfied, chat = await asyncio.gather(
            self.oracle.satisfies_any_of(user.id, self.store.get(chat_id)),
            self._display_chat(chat_id),
        )
        try:
            await self.restrictions.set_restricted(chat_id, user.id, not satisfied)
        except RestrictionError as e:
            logger.error(
                f"[refresh] could not apply restriction state: {e}",
                extra={"op": "refresh", "chat_id": chat_id, "user_id": user.id},
            )
            return RefreshStatus(chat=chat, satisfied=satisfied, error=str(e))
        return RefreshStatus(chat=chat, satisfied=satisfied)

    async def _display_chat(self, chat_id: int) -> ChatRef:
        try:
            return await self.platform.get_chat(chat_id)
        except PlatformError as e:
            logger.warning(f"[refresh] getChat failed: {e}", extra={"chat_id": chat_id})
            return ChatRef(id=chat_id)


def report_lines(statuses: List[RefreshStatus]) -> List[Tuple[ChatRef, str]]:
    return [(s.chat, s.label) for s in statuses]
