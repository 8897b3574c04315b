from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set, Tuple, Union

from linkguard.contracts.v1 import ChatMember, ChatPermissions, ChatRef, MemberStatus, Update, UserRef
from linkguard.ports.im.adapters.base import ChatPlatform, PlatformError


class FakePlatform(ChatPlatform):
    """In-memory platform that records every outbound call."""

    platform = "fake"

    def __init__(self, me: Optional[UserRef] = None):
        self.me = me or UserRef(id=1, is_bot=True, first_name="Guard", username="GuardBot")
        self.chats: Dict[Union[int, str], ChatRef] = {}
        self.members: Dict[Tuple[int, int], MemberStatus] = {}
        self.failing_member_queries: Set[Tuple[int, int]] = set()
        self.failing_restrictions: Set[Tuple[int, int]] = set()
        self.updates: List[List[Update]] = []

        self.sent: List[Tuple[int, str, Optional[int]]] = []
        self.restrictions: List[Tuple[int, int, ChatPermissions]] = []
        self.member_queries: List[Tuple[int, int]] = []
        self.disconnected = False

    def add_chat(self, chat: ChatRef) -> ChatRef:
        self.chats[chat.id] = chat
        if chat.username:
            self.chats[f"@{chat.username}"] = chat
        return chat

    def join(self, chat_id: int, user_id: int, status: MemberStatus = MemberStatus.MEMBER) -> None:
        self.members[(chat_id, user_id)] = status

    async def connect(self) -> UserRef:
        return self.me

    async def disconnect(self) -> None:
        self.disconnected = True

    async def poll(self) -> List[Update]:
        if self.updates:
            return self.updates.pop(0)
        await asyncio.sleep(0.005)
        return []

    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        self.sent.append((chat_id, text, reply_to))

    async def get_chat(self, target: Union[int, str]) -> ChatRef:
        chat = self.chats.get(target)
        if chat is None:
            raise PlatformError("getChat", "Bad Request: chat not found", 400)
        return chat

    async def get_chat_member(self, chat_id: Union[int, str], user_id: int) -> ChatMember:
        key = (int(chat_id), user_id)
        self.member_queries.append(key)
        if key in self.failing_member_queries:
            raise PlatformError("getChatMember", "Bad Request: member list is inaccessible", 400)
        status = self.members.get(key)
        if status is None:
            raise PlatformError("getChatMember", "Bad Request: user not found", 400)
        return ChatMember(
            user=UserRef(id=user_id, first_name="u"),
            status=status,
            is_member=True if status == MemberStatus.RESTRICTED else None,
        )

    async def restrict_chat_member(self, chat_id: int, user_id: int, permissions: ChatPermissions) -> None:
        if (chat_id, user_id) in self.failing_restrictions:
            raise PlatformError("restrictChatMember", "Bad Request: not enough rights", 400)
        self.restrictions.append((chat_id, user_id, permissions))
