import asyncio
import tempfile
import unittest
from pathlib import Path


class TestGuardBot(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        from fake_platform import FakePlatform
        from linkguard.contracts.v1 import ChatRef, UserRef
        from linkguard.kernel.link_store import LinkStore
        from linkguard.ports.im.bridge import GuardBot

        self._td = tempfile.TemporaryDirectory()
        self.store = LinkStore(Path(self._td.name) / "store.json")
        self.platform = FakePlatform()
        self.group = self.platform.add_chat(ChatRef(id=-100, type="supergroup", title="Group A"))
        self.channel = self.platform.add_chat(ChatRef(id=-1, type="channel", title="News", username="news"))
        self.alice = UserRef(id=7, first_name="Alice", username="alice")
        self.dm = ChatRef(id=7, type="private", username="alice")

        self.bot = GuardBot(self.platform, self.store)
        await self.bot.start()

    async def asyncTearDown(self) -> None:
        self._td.cleanup()

    def _msg(self, text, chat=None, sender="default", message_id=10):
        from linkguard.contracts.v1 import TextMessage

        return TextMessage(
            chat=chat or self.group,
            message_id=message_id,
            text=text,
            sender=self.alice if sender == "default" else sender,
        )

    def _last_reply(self):
        self.assertTrue(self.platform.sent)
        return self.platform.sent[-1]

    async def test_link_then_list(self) -> None:
        await self.bot.handle_text(self._msg("/link @news"))
        chat_id, text, reply_to = self._last_reply()
        self.assertEqual((chat_id, reply_to), (-100, 10))
        self.assertIn("Done! This group is linked to <code>News</code>", text)
        self.assertEqual(self.store.get(-100), [-1])
        self.assertEqual(self.store.list(), {-100})

        await self.bot.handle_text(self._msg("/link@GuardBot -1"))
        self.assertIn("already linked", self._last_reply()[1])

        await self.bot.handle_text(self._msg("/list"))
        self.assertEqual(self._last_reply()[1], "Linked chats: @news")

    async def test_unlink(self) -> None:
        await self.store.add(-100, -1)
        await self.bot.handle_text(self._msg("/unlink @news"))
        self.assertIn("unlinked from", self._last_reply()[1])
        self.assertEqual(self.store.get(-100), [])

        await self.bot.handle_text(self._msg("/unlink @news"))
        self.assertIn("not linked", self._last_reply()[1])

    async def test_unknown_target_does_not_mutate(self) -> None:
        await self.bot.handle_text(self._msg("/link @missing"))
        self.assertIn("Chat <code>@missing</code> not found!", self._last_reply()[1])
        self.assertEqual(self.store.list(), set())

    async def test_list_without_links(self) -> None:
        await self.bot.handle_text(self._msg("/list"))
        self.assertEqual(self._last_reply()[1], "No linked chat found.")

    async def test_parse_errors_are_replied(self) -> None:
        await self.bot.handle_text(self._msg("/link"))
        self.assertEqual(self._last_reply()[1], "Usage: <code>/link target</code>")

        await self.bot.handle_text(self._msg("/foo", chat=self.dm))
        self.assertEqual(self._last_reply()[1], "Unknown command: <code>foo</code>")

    async def test_unaddressed_group_chatter_is_ignored(self) -> None:
        await self.bot.handle_text(self._msg("/foo"))
        await self.bot.handle_text(self._msg("hello"))
        await self.bot.handle_text(self._msg("/list@OtherBot"))
        self.assertEqual(self.platform.sent, [])

    async def test_refresh_in_private_chat(self) -> None:
        await self.store.add(-100, -1)
        self.platform.join(-100, 7)
        self.platform.join(-1, 7)

        await self.bot.handle_text(self._msg("/refresh", chat=self.dm))
        self.assertEqual(self._last_reply()[1], "<code>Group A</code>: Unrestricted")
        self.assertEqual([(c, u) for c, u, _ in self.platform.restrictions], [(-100, 7)])

    async def test_refresh_without_managed_chats(self) -> None:
        await self.bot.handle_text(self._msg("/refresh", chat=self.dm))
        self.assertIn("not in any group", self._last_reply()[1])

    async def test_refresh_in_group_points_to_private_chat(self) -> None:
        await self.bot.handle_text(self._msg("/refresh"))
        self.assertIn("private chat", self._last_reply()[1])
        self.assertEqual(self.platform.restrictions, [])

    async def test_refresh_without_sender_is_ignored(self) -> None:
        await self.bot.handle_text(self._msg("/refresh", chat=self.dm, sender=None))
        self.assertEqual(self.platform.sent, [])

    async def test_dispatch_logs_handler_failures(self) -> None:
        from linkguard.contracts.v1 import JoinEvent, UserRef

        await self.store.add(-100, -1)
        self.platform.failing_restrictions.add((-100, 8))
        event = JoinEvent(chat=self.group, message_id=3, members=[UserRef(id=8, username="m")])

        with self.assertLogs("linkguard.bot", level="ERROR"):
            await self.bot.dispatch(event)
        self.assertEqual(len(self.platform.sent), 1)

    async def test_run_forever_processes_updates_until_stopped(self) -> None:
        from linkguard.contracts.v1 import JoinEvent, UserRef

        await self.store.add(-100, -1)
        self.platform.updates.append(
            [JoinEvent(chat=self.group, message_id=3, members=[UserRef(id=8, username="m")])]
        )

        runner = asyncio.ensure_future(self.bot.run_forever())
        for _ in range(50):
            if self.platform.restrictions:
                break
            await asyncio.sleep(0.01)
        self.bot.stop()
        await asyncio.wait_for(runner, timeout=2)

        self.assertEqual([(c, u) for c, u, _ in self.platform.restrictions], [(-100, 8)])
        self.assertTrue(self.platform.disconnected)


if __name__ == "__main__":
    unittest.main()
