from __future__ import annotations

import html
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ChatRef(BaseModel):
    """A chat as reported by getChat / message.chat."""

    id: int
    type: str = ""  # private | group | supergroup | channel
    title: Optional[str] = None
    username: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_private(self) -> bool:
        return self.type == "private"

    def display_html(self) -> str:
        if self.username:
            return f"@{self.username}"
        if self.title:
            return f"<code>{html.escape(self.title)}</code>"
        return f"<code>{self.id}</code>"

    def label_html(self) -> str:
        """Title if known, otherwise the id; used in link/unlink replies."""
        return f"<code>{html.escape(self.title) if self.title else self.id}</code>"


class UserRef(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name or "") if p).strip()
        return name or str(self.id)

    def mention_html(self) -> str:
        if self.username:
            return f"@{self.username}"
        return f'<a href="tg://user?id={self.id}">{html.escape(self.display_name)}</a>'


class MemberStatus(str, Enum):
    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    KICKED = "kicked"


class ChatMember(BaseModel):
    user: UserRef
    status: MemberStatus
    # Only reported for status == restricted.
    is_member: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_active(self) -> bool:
        if self.status in (MemberStatus.CREATOR, MemberStatus.ADMINISTRATOR, MemberStatus.MEMBER):
            return True
        return self.status == MemberStatus.RESTRICTED and bool(self.is_member)


class ChatPermissions(BaseModel):
    can_send_messages: bool = False
    can_send_audios: bool = False
    can_send_documents: bool = False
    can_send_photos: bool = False
    can_send_videos: bool = False
    can_send_video_notes: bool = False
    can_send_voice_notes: bool = False
    can_send_polls: bool = False
    can_send_other_messages: bool = False
    can_add_web_page_previews: bool = False
    can_change_info: bool = False
    can_invite_users: bool = False
    can_pin_messages: bool = False
    can_manage_topics: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def deny_all(cls) -> "ChatPermissions":
        return cls()

    @classmethod
    def allow_all(cls) -> "ChatPermissions":
        return cls(**{name: True for name in cls.model_fields})
