from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .chat import ChatRef, UserRef


class JoinEvent(BaseModel):
    """Service message: one or more users joined `chat`."""

    update_id: int = 0
    chat: ChatRef
    message_id: int
    members: List[UserRef] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class TextMessage(BaseModel):
    update_id: int = 0
    chat: ChatRef
    message_id: int
    text: str
    sender: Optional[UserRef] = None  # absent for anonymous admins / channel posts

    model_config = ConfigDict(extra="forbid")


Update = Union[JoinEvent, TextMessage]
