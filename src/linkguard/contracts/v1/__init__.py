from __future__ import annotations

from .chat import ChatMember, ChatPermissions, ChatRef, MemberStatus, UserRef
from .update import JoinEvent, TextMessage, Update

__all__ = [
    "ChatMember",
    "ChatPermissions",
    "ChatRef",
    "JoinEvent",
    "MemberStatus",
    "TextMessage",
    "Update",
    "UserRef",
]
