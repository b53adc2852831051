"""
Base classes shared by every automod rule kind.

:class:`Rule` fixes the construction and evaluation contract; each kind
validates its own parameters in :meth:`Rule.configure`, so a bad regex or
an unknown pressure weight is reported when the rule is added and never
at evaluation time.

:class:`StrikeRule` implements the discrete strike policy used by every
kind except pressure: a message yields zero or more strikes, each strike
is a timestamped mark that stays live for ``strike_window_seconds``, and
the rule fires once the live count reaches its threshold, clearing all of
the subject's marks.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import ClassVar, Hashable, Iterable, List, Optional, Sequence

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import Clock, RuleState, RuleStateStore
from automodcord.datatypes.automod_datatypes import Punishment, RuleDefinition, RuleKind, Verdict
from automodcord.datatypes.discord_datatypes import SubjectKey, subject_key


class Rule(ABC):
    """
    One configured automod rule and the per-subject state it tracks.

    Args:
        rule_id: Id of the rule within its guild.
        punishment: Punishment applied when the rule fires, parsed or in string form.
        strike_limit: Number of strikes needed to fire.
        strike_window_seconds: Lifetime of an individual strike.
        parameters: Kind specific parameters.
        clock: Monotonic time source, overridable for tests.

    Raises:
        ConfigurationError: If the limits or parameters are invalid for the kind.
    """

    kind: ClassVar[RuleKind]

    def __init__(
        self,
        rule_id: int,
        punishment: Punishment | str,
        strike_limit: int,
        strike_window_seconds: int,
        parameters: Sequence[str] = (),
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        if int(strike_limit) < 1:
            raise ConfigurationError(f"Strike limit must be at least 1, got {strike_limit}")
        if int(strike_window_seconds) < 0:
            raise ConfigurationError(f"Strike timeout cannot be negative, got {strike_window_seconds}")

        self.id = int(rule_id)
        self.punishment = punishment if isinstance(punishment, Punishment) else Punishment.parse(punishment)
        self.strike_limit = int(strike_limit)
        self.strike_window_seconds = int(strike_window_seconds)
        self.parameters: List[str] = [p for p in parameters if p]
        self.clock = clock
        self.states: RuleStateStore[SubjectKey] = RuleStateStore()

        self.configure(self.parameters)

    @classmethod
    def from_definition(cls, definition: RuleDefinition, *, clock: Clock = time.monotonic) -> "Rule":
        return cls(
            definition.id,
            definition.punishment,
            definition.strike_limit,
            definition.strike_window_seconds,
            definition.parameters,
            clock=clock,
        )

    def configure(self, parameters: List[str]) -> None:
        """Validate and store kind specific parameters. The default accepts none."""
        if parameters:
            raise ConfigurationError(f"The '{self.kind}' rule does not take any parameters")

    @property
    def name(self) -> str:
        """Human readable reason attached to this rule's verdicts."""
        return f"{self.kind} rule"

    @abstractmethod
    async def evaluate(self, message: discord.Message) -> Optional[Verdict]:
        """Return a :class:`Verdict` if ``message`` makes the rule fire, otherwise ``None``."""

    def make_verdict(
        self, message: discord.Message, deletes: Iterable[discord.Message] = ()
    ) -> Verdict:
        return Verdict(
            rule_id=self.id,
            punishment=self.punishment,
            reason=self.name,
            message=message,
            side_effects_to_delete=list(deletes),
        )

    def prune(self) -> int:
        """Forget subjects whose state has fully expired."""
        return self.states.prune(self.clock(), self.strike_window_seconds)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} punishment={self.punishment} "
            f"limit={self.strike_limit} window={self.strike_window_seconds}s>"
        )


class StrikeRule(Rule):
    """Rule that accumulates discrete, individually expiring strikes."""

    @property
    def strike_threshold(self) -> int:
        """Live strike count at which the rule fires."""
        return self.strike_limit

    @abstractmethod
    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        """Return how many strikes ``message`` earns; may update ``state`` bookkeeping."""

    def burst_to_delete(self, message: discord.Message, state: RuleState) -> List[discord.Message]:
        """Extra messages to purge when the rule fires. None by default."""
        return []

    def strike_token(self, message: discord.Message, index: int) -> Hashable:
        return (message.id, index)

    async def evaluate(self, message: discord.Message) -> Optional[Verdict]:
        now = self.clock()
        state = self.states.get(subject_key(message))
        state.expire_marks(now, self.strike_window_seconds)
        state.last_seen_at = now

        strikes = await self.count_strikes(message, state)
        if strikes <= 0:
            return None

        for index in range(strikes):
            state.add_mark(self.strike_token(message, index), now)

        if state.strike_count < self.strike_threshold:
            return None

        deletes = self.burst_to_delete(message, state)
        state.clear_marks()
        return self.make_verdict(message, deletes)
