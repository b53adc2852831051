"""
Per-guild ordered registry of active automod rules.

The registry pairs every stored :class:`RuleDefinition` with the live
:class:`Rule` built from it. Rule order is id order, and ids are allocated
as ``max existing id + 1`` so evaluation order matches insertion order.

Lifecycle:
    1. ``await registry.initialize()`` loads every guild's rules before the
       bot handles any event; until then ``list`` returns nothing.
    2. ``add``/``remove`` are called by the ``/automod`` commands and write
       through to the persistence collaborator before touching memory.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from automodcord.automod.rule_state import Clock
from automodcord.automod.rules import Rule, build_rule
from automodcord.datatypes.automod_datatypes import Punishment, RuleDefinition, RuleKind
from automodcord.datatypes.discord_datatypes import GuildID
from automodcord.util.logger import get_logger

logger = get_logger("rule_registry")


class RuleStore(Protocol):
    """Persistence collaborator; :class:`AutomodRulesRepository` implements it."""

    async def load_all_rules(self) -> Dict[GuildID, List[RuleDefinition]]: ...

    async def insert_rule(self, definition: RuleDefinition) -> int: ...

    async def delete_rule(self, guild_id: GuildID, rule_id: int) -> bool: ...

    async def max_rule_id(self, guild_id: GuildID) -> int: ...


@dataclass(slots=True)
class RegisteredRule:
    definition: RuleDefinition
    rule: Rule


class RuleRegistry:
    """Holds every guild's rules in evaluation order."""

    def __init__(self, store: RuleStore, *, clock: Clock = time.monotonic) -> None:
        self.store = store
        self.clock = clock
        self._guilds: Dict[GuildID, List[RegisteredRule]] = {}
        # Stored rules that failed to build at warm-up, by guild and id.
        self._unloaded: Dict[GuildID, Dict[int, RuleDefinition]] = {}
        self._lock = asyncio.Lock()
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """Load and build every stored rule. Rules that no longer build are skipped and logged."""
        stored = await self.store.load_all_rules()
        guilds: Dict[GuildID, List[RegisteredRule]] = {}
        unloaded: Dict[GuildID, Dict[int, RuleDefinition]] = {}
        loaded = 0

        for guild_id, definitions in stored.items():
            entries: List[RegisteredRule] = []
            for definition in sorted(definitions, key=lambda d: d.id):
                try:
                    rule = build_rule(definition, clock=self.clock)
                except Exception as exc:
                    logger.warning(
                        "[RULE REGISTRY] Could not load rule %s of guild %s: %s", definition.id, guild_id, exc
                    )
                    unloaded.setdefault(GuildID(guild_id), {})[definition.id] = definition
                    continue
                entries.append(RegisteredRule(definition, rule))
            if entries:
                guilds[GuildID(guild_id)] = entries
                loaded += len(entries)

        self._guilds = guilds
        self._unloaded = unloaded
        self._ready = True
        logger.info("[RULE REGISTRY] Loaded %d rule(s) across %d guild(s)", loaded, len(guilds))

    def list(self, guild_id: GuildID) -> Tuple[Rule, ...]:
        """Rules of the guild in evaluation order. Empty if none or not warmed up yet."""
        return tuple(entry.rule for entry in self._guilds.get(GuildID(guild_id), ()))

    def definitions(self, guild_id: GuildID) -> Tuple[RuleDefinition, ...]:
        return tuple(entry.definition for entry in self._guilds.get(GuildID(guild_id), ()))

    def guilds(self) -> List[GuildID]:
        return list(self._guilds)

    async def add(
        self,
        guild_id: GuildID,
        kind: RuleKind | str,
        punishment: Punishment | str,
        strike_limit: int,
        strike_window_seconds: int,
        parameters: Sequence[str] = (),
    ) -> RuleDefinition:
        """
        Create, persist and activate a new rule.

        Raises:
            ConfigurationError: If the kind, punishment, limits or parameters are invalid.
                Nothing is persisted in that case.
        """
        guild_id = GuildID(guild_id)
        async with self._lock:
            entries = self._guilds.get(guild_id, [])
            next_id = max(
                max((entry.definition.id for entry in entries), default=0),
                max(self._unloaded.get(guild_id, {}), default=0),
                await self.store.max_rule_id(guild_id),
            ) + 1

            definition = RuleDefinition(
                guild_id=guild_id,
                id=next_id,
                kind=RuleKind.parse(kind),
                punishment=punishment if isinstance(punishment, Punishment) else Punishment.parse(punishment),
                strike_limit=int(strike_limit),
                strike_window_seconds=int(strike_window_seconds),
                parameters=[p for p in parameters if p],
            )
            rule = build_rule(definition, clock=self.clock)

            await self.store.insert_rule(definition)
            self._guilds[guild_id] = [*entries, RegisteredRule(definition, rule)]

        logger.info("[RULE REGISTRY] Added rule %s to guild %s", definition.summary(), guild_id)
        return definition

    async def remove(self, guild_id: GuildID, rule_id: int) -> Optional[RuleDefinition]:
        """
        Delete a rule by id, including a stored rule that failed to build at warm-up.

        Returns:
            The removed definition, or ``None`` if the guild has no such rule.
        """
        guild_id = GuildID(guild_id)
        async with self._lock:
            entries = self._guilds.get(guild_id, [])
            match = next((entry for entry in entries if entry.definition.id == int(rule_id)), None)
            if match is None:
                return await self._remove_unloaded(guild_id, int(rule_id))

            await self.store.delete_rule(guild_id, match.definition.id)
            remaining = [entry for entry in entries if entry is not match]
            if remaining:
                self._guilds[guild_id] = remaining
            else:
                self._guilds.pop(guild_id, None)

        logger.info("[RULE REGISTRY] Removed rule %s from guild %s", match.definition.summary(), guild_id)
        return match.definition

    async def _remove_unloaded(self, guild_id: GuildID, rule_id: int) -> Optional[RuleDefinition]:
        unloaded = self._unloaded.get(guild_id, {})
        definition = unloaded.get(rule_id)
        if definition is None:
            return None

        await self.store.delete_rule(guild_id, rule_id)
        del unloaded[rule_id]
        if not unloaded:
            self._unloaded.pop(guild_id, None)
        logger.info("[RULE REGISTRY] Removed unloadable rule %s from guild %s", definition.summary(), guild_id)
        return definition

    async def discard_stored(self, guild_id: GuildID, rule_id: int) -> bool:
        """
        Delete a stored row the registry knows nothing about, such as one that could
        not even be read at warm-up. Returns whether a row was deleted.
        """
        guild_id = GuildID(guild_id)
        async with self._lock:
            if any(entry.definition.id == int(rule_id) for entry in self._guilds.get(guild_id, ())):
                return False
            deleted = await self.store.delete_rule(guild_id, int(rule_id))
        if deleted:
            logger.info("[RULE REGISTRY] Discarded unreadable rule %s from guild %s", rule_id, guild_id)
        return deleted

    def unloaded(self, guild_id: GuildID) -> Tuple[RuleDefinition, ...]:
        """Stored rules of the guild that failed to build at warm-up, in id order."""
        stored = self._unloaded.get(GuildID(guild_id), {})
        return tuple(stored[rule_id] for rule_id in sorted(stored))

    def prune(self) -> int:
        """Drop idle per-subject state from every rule; returns how many subjects were forgotten."""
        return sum(entry.rule.prune() for entries in self._guilds.values() for entry in entries)
