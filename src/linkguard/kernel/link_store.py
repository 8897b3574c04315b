"""
Link registry for protected chats.

Maps a protected chat id to the ordered list of linked chat ids whose
membership satisfies its subscription policy. The whole map is written
through to a JSON file after every mutation.

File format (keys are stringified chat ids):

    {"-1001234": [-1005678, -1009999]}
"""

from __future__ import annotations

import asyncio
import copy
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from ..util.fs import atomic_write_json, read_json

logger = logging.getLogger("linkguard.store")

ChatId = Union[int, str]


def _key(chat_id: int) -> str:
    return str(int(chat_id))


class LinkStore:
    """Persisted protected-chat -> linked-chats map.

    Reads are served from memory. Every mutation (read-modify-write-persist)
    runs under one asyncio.Lock, so concurrent add/drop calls on the same or
    different keys are applied one at a time and never lose an update.
    """

    def __init__(self, path: Path):
        self.path = path
        self._links: Dict[str, List[ChatId]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._load()

    def _load(self) -> None:
        """Load the map from disk; any failure yields an empty store."""
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning(f"[load] unreadable store {self.path}, starting empty: {e}")
            self._links = {}
            return

        links: Dict[str, List[ChatId]] = {}
        for raw_key, raw_ids in data.items():
            try:
                key = _key(raw_key)
            except (TypeError, ValueError):
                logger.warning(f"[load] skipping non-numeric chat id {raw_key!r}")
                continue
            if not isinstance(raw_ids, list):
                continue
            ids: List[ChatId] = []
            for cid in raw_ids:
                if isinstance(cid, (int, str)) and not isinstance(cid, bool) and cid not in ids:
                    ids.append(cid)
            links[key] = ids
        self._links = links

    def _mutation_lock(self) -> asyncio.Lock:
        # Created on first use so it binds to the loop that runs the bot.
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _snapshot(self) -> Dict[str, List[ChatId]]:
        return copy.deepcopy(self._links)

    async def _commit(self, key: str, ids: List[ChatId]) -> None:
        """Replace one entry and persist; the entry is restored if the write fails."""
        previous = self._links.get(key)
        self._links[key] = ids
        try:
            await asyncio.to_thread(atomic_write_json, self.path, self._snapshot())
        except OSError:
            if previous is None:
                self._links.pop(key, None)
            else:
                self._links[key] = previous
            raise

    def get(self, protected_id: int) -> List[ChatId]:
        """Linked chats for `protected_id`, in insertion order ([] if none)."""
        return list(self._links.get(str(protected_id).strip(), []))

    def list(self) -> Set[int]:
        """Managed chats: protected chats with at least one linked chat."""
        return {int(k) for k, ids in self._links.items() if ids}

    async def add(self, protected_id: int, linked_id: ChatId) -> bool:
        """Link `linked_id` to `protected_id`. Returns False if already linked."""
        async with self._mutation_lock():
            key = _key(protected_id)
            ids = self._links.get(key, [])
            if linked_id in ids:
                return False
            await self._commit(key, [*ids, linked_id])
        logger.info(f"[add] {protected_id} -> {linked_id}", extra={"op": "link", "chat_id": protected_id})
        return True

    async def drop(self, protected_id: int, linked_id: ChatId) -> bool:
        """Unlink `linked_id` from `protected_id`. Returns False if it was not linked."""
        async with self._mutation_lock():
            key = _key(protected_id)
            ids = self._links.get(key, [])
            if linked_id not in ids:
                return False
            await self._commit(key, [cid for cid in ids if cid != linked_id])
        logger.info(f"[drop] {protected_id} -/-> {linked_id}", extra={"op": "unlink", "chat_id": protected_id})
        return True
