"""
Guard bot - core loop.

Handles:
- Inbound: platform updates -> JoinGuard / command handlers
- Command processing (/list, /link, /unlink, /refresh)
- Replies to the originating chat
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Optional, Set

from ...contracts.v1 import JoinEvent, TextMessage, Update, UserRef
from ...kernel.link_store import LinkStore
from ...kernel.settings import BotSettings
from ...util.file_lock import acquire_instance_lock, release_instance_lock
from .adapters.base import ChatPlatform, PlatformError
from .adapters.telegram import TelegramAdapter
from .commands import (
    CommandCall,
    ParseError,
    format_link_result,
    format_linked_list,
    format_parse_error,
    format_refresh_elsewhere,
    format_refresh_report,
    format_target_not_found,
    format_unlink_result,
    parse_call,
    parse_target,
)
from .guard import JoinGuard, resolve_chats
from .membership import MembershipOracle
from .refresh import RefreshReconciler, report_lines
from .restriction import RestrictionController

logger = logging.getLogger("linkguard.bot")


class GuardBot:
    """
    Main bot class.

    Coordinates:
    - Platform adapter (updates in, replies and moderation out)
    - Link store
    - Join guard and refresh reconciler
    """

    def __init__(self, platform: ChatPlatform, store: LinkStore):
        self.platform = platform
        self.store = store
        self.oracle = MembershipOracle(platform)
        self.restrictions = RestrictionController(platform)
        self.refresher = RefreshReconciler(store, platform, self.oracle, self.restrictions)

        self.me: Optional[UserRef] = None
        self.guard: Optional[JoinGuard] = None
        self._running = False
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._poll_task: Optional["asyncio.Task[list]"] = None

    @property
    def username(self) -> str:
        return (self.me.username if self.me else "") or ""

    async def start(self) -> UserRef:
        """Connect and learn the bot's own identity."""
        self.me = await self.platform.connect()
        self.guard = JoinGuard(self.store, self.platform, self.oracle, self.restrictions, self.username)
        self._running = True
        logger.info(f"[start] Guard bot started as @{self.username}")
        return self.me

    def stop(self) -> None:
        self._running = False
        if self._poll_task is not None:
            self._poll_task.cancel()

    async def run_forever(self) -> None:
        """Poll until stop(); each update is handled in its own task."""
        try:
            while self._running:
                self._poll_task = asyncio.ensure_future(self.platform.poll())
                try:
                    updates = await self._poll_task
                except asyncio.CancelledError:
                    if self._running:
                        raise
                    break
                finally:
                    self._poll_task = None
                for update in updates:
                    self._spawn(self.dispatch(update))
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            await self.platform.disconnect()
            logger.info("[stop] Guard bot stopped")

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def dispatch(self, update: Update) -> None:
        """Handle one update; faults are logged, never raised into the loop."""
        try:
            if isinstance(update, JoinEvent):
                await self.handle_join(update)
            elif isinstance(update, TextMessage):
                await self.handle_text(update)
        except Exception:
            logger.exception(
                "[dispatch] update handling failed",
                extra={"update_id": update.update_id, "chat_id": update.chat.id},
            )

    async def handle_join(self, event: JoinEvent) -> None:
        if self.guard is None:
            raise RuntimeError("bot not started")
        await self.guard.handle_join(event)

    async def handle_text(self, msg: TextMessage) -> None:
        parsed = parse_call(msg.text, self.username, private=msg.chat.is_private)
        if parsed is None:
            return

        if isinstance(parsed, ParseError):
            await self._reply(msg, format_parse_error(parsed))
            return

        logger.info(
            f"[command] /{parsed.command}",
            extra={"op": parsed.command, "chat_id": msg.chat.id, "user_id": msg.sender.id if msg.sender else None},
        )
        if parsed.command in ("link", "unlink"):
            await self._handle_link(msg, parsed)
        elif parsed.command == "list":
            await self._handle_list(msg)
        elif parsed.command == "refresh":
            await self._handle_refresh(msg)

    # =========================================================================
    # Command Handlers
    # =========================================================================

    async def _reply(self, msg: TextMessage, text: str) -> None:
        await self.platform.send_message(msg.chat.id, text, reply_to=msg.message_id)

    async def _handle_link(self, msg: TextMessage, call: CommandCall) -> None:
        """Handle /link and /unlink."""
        # TODO: verify the sender administers both chats before changing links.
        raw_target = call.args["target"]
        try:
            chat = await self.platform.get_chat(parse_target(raw_target))
        except PlatformError as e:
            logger.info(f"[link] target lookup failed: {e}", extra={"op": call.command, "chat_id": msg.chat.id})
            await self._reply(msg, format_target_not_found(raw_target))
            return

        if call.command == "link":
            added = await self.store.add(msg.chat.id, chat.id)
            await self._reply(msg, format_link_result(chat, added))
        else:
            dropped = await self.store.drop(msg.chat.id, chat.id)
            await self._reply(msg, format_unlink_result(chat, dropped))

    async def _handle_list(self, msg: TextMessage) -> None:
        """Handle /list."""
        linked = self.store.get(msg.chat.id)
        chats = await resolve_chats(self.platform, linked) if linked else []
        await self._reply(msg, format_linked_list(chats))

    async def _handle_refresh(self, msg: TextMessage) -> None:
        """Handle /refresh (private chats only)."""
        if msg.sender is None:
            return
        if not msg.chat.is_private:
            await self._reply(msg, format_refresh_elsewhere(self.username))
            return
        statuses = await self.refresher.refresh(msg.sender)
        await self._reply(msg, format_refresh_report(report_lines(statuses)))


async def _serve(bot: GuardBot) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, bot.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            pass
    await bot.start()
    await bot.run_forever()


def start_bot(settings: BotSettings) -> None:
    """
    Run the guard bot until interrupted.

    This is the main entry point called by the CLI.
    """
    lock_file = acquire_instance_lock(settings.store_path.with_suffix(".lock"))
    try:
        store = LinkStore(settings.store_path)
        adapter = TelegramAdapter(
            token=settings.token,
            api_timeout=settings.api_timeout,
            poll_timeout=settings.poll_timeout,
        )
        bot = GuardBot(platform=adapter, store=store)
        logger.info(f"[start_bot] store={settings.store_path} managed_chats={len(store.list())}")
        asyncio.run(_serve(bot))
    finally:
        release_instance_lock(lock_file)
