"""Per-channel counters that mute automod announcements for a short window."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from automodcord.datatypes.discord_datatypes import ChannelID


class SilentChannels:
    """
    Rolling mute counters keyed by channel.

    Each trigger increments a channel's counter and schedules a matching
    decrement ``window_seconds`` later; the channel is silent while its
    counter is above zero. Decrements never take a counter below zero, so a
    manual clear followed by pending decrements is harmless.
    """

    def __init__(self, window_seconds: float = 3.0) -> None:
        self.window_seconds = window_seconds
        self._counts: Dict[ChannelID, int] = {}
        self._handles: set[asyncio.TimerHandle] = set()

    def get(self, channel_id: ChannelID) -> int:
        return self._counts.get(ChannelID(channel_id), 0)

    def is_silent(self, channel_id: ChannelID) -> bool:
        return self.get(channel_id) > 0

    def set(self, channel_id: ChannelID, value: int) -> None:
        channel_id = ChannelID(channel_id)
        if value > 0:
            self._counts[channel_id] = value
        else:
            self._counts.pop(channel_id, None)

    def increment(self, channel_id: ChannelID, loop: Optional[asyncio.AbstractEventLoop] = None) -> int:
        """Bump the counter and schedule its decrement. Must be called from the event loop."""
        channel_id = ChannelID(channel_id)
        self._counts[channel_id] = self.get(channel_id) + 1

        loop = loop or asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _expire() -> None:
            self._handles.discard(handle)
            self.decrement(channel_id)

        handle = loop.call_later(self.window_seconds, _expire)
        self._handles.add(handle)
        return self._counts[channel_id]

    def decrement(self, channel_id: ChannelID) -> int:
        self.set(channel_id, self.get(channel_id) - 1)
        return self.get(channel_id)

    def clear(self, channel_id: ChannelID) -> None:
        self.set(channel_id, 0)

    def shutdown(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        self._counts.clear()
