"""Versioned per-channel index slots with single-flight rebuilds.

Readers take whatever index is in the slot; it is never mutated. A rebuild
swaps the finished index in with one assignment. Rebuild requests arriving
while one is running don't start a second build: they mark the slot dirty and
wait on the running task, which makes one more pass before finishing.
"""

import asyncio
from dataclasses import dataclass

from loguru import logger

from chatpress.gateway.config import Settings
from chatpress.gateway.exceptions import IndexNotReadyError
from chatpress.gateway.posts.index import ChannelIndex, HistorySource, build_index
from chatpress.gateway.resolver import EntityResolver


@dataclass
class _Slot:
    index: ChannelIndex | None = None
    task: asyncio.Task[ChannelIndex] | None = None
    dirty: bool = False
    version: int = 0


class IndexRegistry:
    def __init__(self, source: HistorySource, resolver: EntityResolver, settings: Settings):
        self.source = source
        self.resolver = resolver
        self.settings = settings
        self._slots: dict[str, _Slot] = {}
        self._background: set[asyncio.Task] = set()

    def _slot(self, channel_id: str) -> _Slot:
        return self._slots.setdefault(channel_id, _Slot())

    @property
    def channels(self) -> list[str]:
        return list(self._slots)

    def get(self, channel_id: str) -> ChannelIndex | None:
        slot = self._slots.get(channel_id)
        return slot.index if slot else None

    def require(self, channel_id: str) -> ChannelIndex:
        index = self.get(channel_id)
        if index is None:
            raise IndexNotReadyError(channel_id)
        return index

    def is_rebuilding(self, channel_id: str) -> bool:
        slot = self._slots.get(channel_id)
        return bool(slot and slot.task and not slot.task.done())

    async def rebuild(self, channel_id: str) -> ChannelIndex:
        """Rebuild the channel's index, joining an in-flight rebuild if there is one.

        Raises whatever the build raised; the slot keeps its previous index then.
        """
        slot = self._slot(channel_id)
        if slot.task is None or slot.task.done():
            slot.task = asyncio.create_task(self._run(channel_id, slot))
        else:
            slot.dirty = True
            logger.debug(f"Rebuild of channel {channel_id} already running, queued one more pass")
        # A cancelled waiter must not cancel the build other waiters share
        return await asyncio.shield(slot.task)

    async def _run(self, channel_id: str, slot: _Slot) -> ChannelIndex:
        while True:
            slot.dirty = False
            index = await build_index(channel_id, self.source, self.resolver, self.settings, version=slot.version + 1)
            slot.version = index.version
            slot.index = index
            if not slot.dirty:
                return index

    def notify(self, channel_id: str, event: str = "update") -> asyncio.Task:
        """Schedule a rebuild in the background after a change in `channel_id`."""
        task = asyncio.create_task(self._rebuild_logged(channel_id, event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _rebuild_logged(self, channel_id: str, event: str) -> None:
        logger.info(f"Rebuilding index for channel {channel_id} after {event}")
        try:
            await self.rebuild(channel_id)
        except Exception as e:
            current = self.get(channel_id)
            kept = f"keeping v{current.version}" if current else "no index yet"
            logger.exception(f"Rebuild of channel {channel_id} failed ({kept}): {e}")

    async def close(self) -> None:
        tasks = [*self._background, *(slot.task for slot in self._slots.values() if slot.task)]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
