"""
Automod engine: runs every guild message through the guild's rules.

Message flow:
    on_message -> gate -> silence check -> rules in registry order
    -> collected verdicts -> dispatcher, one verdict at a time

Messages from the same member of the same guild are processed strictly
one after the other, because rule state (strike marks, the last seen
content, pressure) depends on arrival order. Different members and
different guilds interleave freely at await points.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional, Sequence

import discord

from automodcord.automod.action_dispatcher import ActionDispatcher, DispatchOutcome
from automodcord.automod.rule_registry import RuleRegistry
from automodcord.automod.rule_state import Clock
from automodcord.automod.rules import Rule
from automodcord.automod.silent_channels import SilentChannels
from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.datatypes.automod_datatypes import Verdict
from automodcord.datatypes.discord_datatypes import ChannelID, GuildID, SubjectKey, subject_key
from automodcord.util.logger import get_logger

logger = get_logger("automod_engine")


class AutomodEngine:
    """
    Owns the per-process automod state: subject locks, the silence counters
    and the dispatcher. Construct it after the registry and the guild config
    manager have been warmed up.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        dispatcher: ActionDispatcher,
        config_manager: GuildAutomodConfigManager,
        silent_channels: SilentChannels,
        *,
        bypass_permission: str = "manage_messages",
        prune_interval_seconds: float = 300.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.config_manager = config_manager
        self.silent_channels = silent_channels
        self.bypass_permission = bypass_permission
        self.prune_interval_seconds = prune_interval_seconds
        self.clock = clock

        self._locks: Dict[SubjectKey, asyncio.Lock] = {}
        self._lock_users: Dict[SubjectKey, int] = {}
        self._last_prune = clock()

    def should_process(self, message: discord.Message) -> bool:
        """Whether automod looks at ``message`` at all."""
        guild = message.guild
        author = message.author
        if guild is None or author.bot or message.edited_at is not None:
            return False
        permissions = getattr(author, "guild_permissions", None)
        if permissions is None or getattr(permissions, self.bypass_permission, False):
            return False

        me = guild.me
        if me is None:
            return False
        return author.top_role.position < me.top_role.position

    def check_silence_triggers(self, message: discord.Message) -> bool:
        """Silence announcements in the message's channel if it contains a configured trigger."""
        triggers = self.config_manager.get(GuildID(message.guild.id)).silence_triggers
        content = message.content or ""
        if not any(trigger and trigger in content for trigger in triggers):
            return False
        count = self.silent_channels.increment(ChannelID(message.channel.id))
        logger.debug("[AUTOMOD ENGINE] Channel %s silenced (count %d)", message.channel.id, count)
        return True

    async def handle_message(self, message: discord.Message) -> List[DispatchOutcome]:
        """Gate, evaluate and dispatch one inbound message."""
        if not self.should_process(message):
            return []

        self.check_silence_triggers(message)

        rules = self.registry.list(GuildID(message.guild.id))
        if not rules:
            return []

        key = subject_key(message)
        outcomes: List[DispatchOutcome] = []
        async with self._subject_lock(key):
            verdicts = await self.evaluate(message, rules)
            for verdict in verdicts:
                try:
                    outcomes.append(await self.dispatcher.dispatch(verdict))
                except Exception:
                    logger.exception(
                        "[AUTOMOD ENGINE] Dispatching rule %s for message %s failed", verdict.rule_id, message.id
                    )

        self._maybe_prune()
        return outcomes

    async def evaluate(self, message: discord.Message, rules: Optional[Sequence[Rule]] = None) -> List[Verdict]:
        """Run ``message`` through ``rules`` (default: the guild's rules) and collect every verdict in order."""
        if rules is None:
            rules = self.registry.list(GuildID(message.guild.id))

        verdicts: List[Verdict] = []
        for rule in rules:
            try:
                verdict = await rule.evaluate(message)
            except Exception:
                logger.exception(
                    "[AUTOMOD ENGINE] Rule %r raised while evaluating message %s", rule, message.id
                )
                continue
            if verdict is not None:
                logger.info(
                    "[AUTOMOD ENGINE] Rule %s (%s) fired for %s in guild %s",
                    rule.id, rule.kind, message.author.id, message.guild.id,
                )
                verdicts.append(verdict)
        return verdicts

    def _subject_lock(self, key: SubjectKey) -> "_SubjectLock":
        return _SubjectLock(self, key)

    def _maybe_prune(self) -> None:
        now = self.clock()
        if now - self._last_prune < self.prune_interval_seconds:
            return
        self._last_prune = now
        forgotten = self.registry.prune()
        if forgotten:
            logger.debug("[AUTOMOD ENGINE] Pruned idle state for %d subject(s)", forgotten)

    async def shutdown(self) -> None:
        try:
            await self.dispatcher.shutdown()
        finally:
            self.silent_channels.shutdown()
            self._locks.clear()
            self._lock_users.clear()
        logger.info("[AUTOMOD ENGINE] Automod engine shut down")


class _SubjectLock:
    """Async context manager for a subject's lock; the lock is dropped once nobody holds or awaits it."""

    def __init__(self, engine: AutomodEngine, key: SubjectKey) -> None:
        self.engine = engine
        self.key = key

    async def __aenter__(self) -> None:
        engine = self.engine
        lock = self.lock = engine._locks.setdefault(self.key, asyncio.Lock())
        engine._lock_users[self.key] = engine._lock_users.get(self.key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._release_user()
            raise

    async def __aexit__(self, *exc_info) -> None:
        self.lock.release()
        self._release_user()

    def _release_user(self) -> None:
        engine = self.engine
        remaining = engine._lock_users.get(self.key, 1) - 1
        if remaining <= 0:
            engine._lock_users.pop(self.key, None)
            engine._locks.pop(self.key, None)
        else:
            engine._lock_users[self.key] = remaining
