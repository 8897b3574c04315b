"""
Telegram Bot API adapter.

- _api(): JSON POST wrapper with timeout and error mapping
- poll(): long-poll getUpdates, normalized into JoinEvent / TextMessage
- Blocking HTTP runs in a worker thread so the event loop keeps going
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ....contracts.v1 import ChatMember, ChatPermissions, ChatRef, JoinEvent, TextMessage, Update, UserRef
from .base import ChatPlatform, PlatformError

logger = logging.getLogger("linkguard.telegram")

# Telegram API limits
TELEGRAM_MAX_MESSAGE_LENGTH = 4096
API_BASE = "https://api.telegram.org"


def parse_update(update: Dict[str, Any]) -> Optional[Update]:
    """Normalize one getUpdates item; None for updates the bot ignores."""
    update_id = int(update.get("update_id") or 0)
    msg = update.get("message")
    if not isinstance(msg, dict):
        return None

    chat = ChatRef.model_validate(msg.get("chat") or {})
    message_id = int(msg.get("message_id") or 0)

    new_members = msg.get("new_chat_members")
    if isinstance(new_members, list) and new_members:
        return JoinEvent(
            update_id=update_id,
            chat=chat,
            message_id=message_id,
            members=[UserRef.model_validate(m) for m in new_members if isinstance(m, dict)],
        )

    text = msg.get("text")
    if not text:
        return None
    sender = msg.get("from")
    return TextMessage(
        update_id=update_id,
        chat=chat,
        message_id=message_id,
        text=str(text),
        sender=UserRef.model_validate(sender) if isinstance(sender, dict) else None,
    )


class TelegramAdapter(ChatPlatform):
    """
    Telegram Bot API adapter using long-poll getUpdates.
    """

    platform = "telegram"

    def __init__(
        self,
        token: str,
        api_timeout: float = 15.0,
        poll_timeout: int = 25,
        api_base: str = API_BASE,
    ):
        self.token = token
        self.api_timeout = api_timeout
        self.poll_timeout = poll_timeout
        self.api_base = api_base.rstrip("/")

        self._offset = 0
        self._me: Optional[UserRef] = None

    def _api(self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """
        Call the Bot API and return its `result`.

        Uses a JSON body for consistent encoding (handles non-ASCII text).
        """
        url = f"{self.api_base}/bot{self.token}/{method}"
        data = json.dumps(params or {}, ensure_ascii=False).encode("utf-8")

        req = urllib.request.Request(url, data=data, method="POST")
        req.add_header("Content-Type", "application/json; charset=utf-8")
        req.add_header("Accept", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=timeout or self.api_timeout) as resp:
                body = resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            # Telegram still answers with a JSON error document.
            body = e.read().decode("utf-8", errors="replace")
            if not body:
                raise PlatformError(method, f"HTTP {e.code}", e.code) from e
        except (urllib.error.URLError, OSError) as e:
            raise PlatformError(method, str(e)) from e

        try:
            doc = json.loads(body)
        except json.JSONDecodeError as e:
            raise PlatformError(method, f"invalid JSON reply: {body[:200]}") from e
        if not isinstance(doc, dict) or not doc.get("ok"):
            desc = str(doc.get("description") or "unknown error") if isinstance(doc, dict) else "unknown error"
            code = int(doc.get("error_code") or 0) if isinstance(doc, dict) else 0
            raise PlatformError(method, desc, code)
        return doc.get("result")

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        return await asyncio.to_thread(self._api, method, params, timeout)

    async def connect(self) -> UserRef:
        """Verify token and get bot info."""
        result = await self._call("getMe")
        try:
            self._me = UserRef.model_validate(result)
        except ValidationError as e:
            raise PlatformError("getMe", f"unexpected reply: {e}") from e
        logger.info(f"[connect] Connected as @{self._me.username}")
        return self._me

    async def poll(self) -> List[Update]:
        """
        Long-poll for updates.

        Transport failures are logged and yield an empty batch so the caller
        simply polls again.
        """
        try:
            result = await self._call(
                "getUpdates",
                {
                    "offset": self._offset,
                    "timeout": self.poll_timeout,
                    # Edited messages are ignored to avoid processing a command twice.
                    "allowed_updates": ["message"],
                },
                timeout=self.poll_timeout + 10,
            )
        except PlatformError as e:
            logger.warning(f"[poll] getUpdates failed: {e}", extra={"method": "getUpdates"})
            return []

        updates: List[Update] = []
        for raw in result if isinstance(result, list) else []:
            if not isinstance(raw, dict):
                continue
            update_id = int(raw.get("update_id") or 0)
            self._offset = max(self._offset, update_id + 1)
            try:
                parsed = parse_update(raw)
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"[poll] Error parsing update: {e}", extra={"update_id": update_id})
                continue
            if parsed is not None:
                updates.append(parsed)
        return updates

    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        if not text:
            return
        if len(text) > TELEGRAM_MAX_MESSAGE_LENGTH:
            text = text[: TELEGRAM_MAX_MESSAGE_LENGTH - 1] + "…"
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if reply_to:
            params["reply_parameters"] = {"message_id": int(reply_to), "allow_sending_without_reply": True}
        await self._call("sendMessage", params)

    async def get_chat(self, target: Union[int, str]) -> ChatRef:
        result = await self._call("getChat", {"chat_id": target})
        try:
            return ChatRef.model_validate(result)
        except ValidationError as e:
            raise PlatformError("getChat", f"unexpected reply: {e}") from e

    async def get_chat_member(self, chat_id: Union[int, str], user_id: int) -> ChatMember:
        result = await self._call("getChatMember", {"chat_id": chat_id, "user_id": user_id})
        try:
            return ChatMember.model_validate(result)
        except ValidationError as e:
            raise PlatformError("getChatMember", f"unexpected reply: {e}") from e

    async def restrict_chat_member(self, chat_id: int, user_id: int, permissions: ChatPermissions) -> None:
        await self._call(
            "restrictChatMember",
            {
                "chat_id": chat_id,
                "user_id": user_id,
                "permissions": permissions.model_dump(),
                "use_independent_chat_permissions": True,
            },
        )
