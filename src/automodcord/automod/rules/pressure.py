"""
Pressure based automod.

Instead of counting discrete strikes, every message adds a weight to a
per-member accumulator that drains linearly over time. Long messages, many
lines, mentions, attachments and verbatim repeats weigh more than a short
chat line, so a member typing normally never reaches the threshold while a
flood of pastes or pings does within a few messages.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import List, Optional

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rules.base import Rule
from automodcord.datatypes.automod_datatypes import RuleKind, Verdict
from automodcord.datatypes.discord_datatypes import subject_key

# Pressure points per unit of strike limit; a limit of 6 means a threshold of 60
PRESSURE_PER_LIMIT = 10.0


@dataclass(frozen=True, slots=True)
class PressureWeights:
    """Points a message adds to the accumulator."""

    base: float = 10.0
    char: float = 0.05
    line: float = 2.0
    mention: float = 2.5
    attachment: float = 8.3
    repeat: float = 10.0

    @classmethod
    def parse(cls, parameters: List[str]) -> "PressureWeights":
        """Build weights from ``key=value`` overrides, e.g. ``['mention=5', 'char=0.1']``."""
        valid = {f.name for f in fields(cls)}
        overrides = {}
        for param in parameters:
            key, sep, value = param.partition("=")
            key = key.strip().lower()
            if not sep or key not in valid:
                raise ConfigurationError(
                    f"Invalid pressure parameter '{param}'. Use key=value with key one of: {', '.join(sorted(valid))}"
                )
            try:
                weight = float(value)
            except ValueError:
                raise ConfigurationError(f"Pressure weight '{key}' must be a number, got '{value}'") from None
            if weight < 0:
                raise ConfigurationError(f"Pressure weight '{key}' cannot be negative")
            overrides[key] = weight
        return replace(cls(), **overrides)


class PressureRule(Rule):
    """Fires when a member's decaying message pressure crosses ``strike_limit * 10``."""

    kind = RuleKind.PRESSURE

    def configure(self, parameters: List[str]) -> None:
        self.weights = PressureWeights.parse(parameters)

    @property
    def name(self) -> str:
        return "Too much pressure (spam)"

    @property
    def threshold(self) -> float:
        return self.strike_limit * PRESSURE_PER_LIMIT

    @property
    def decay_per_second(self) -> float:
        """Pressure drained per second; a full threshold drains over one strike window."""
        if self.strike_window_seconds <= 0:
            return float("inf")
        return self.threshold / self.strike_window_seconds

    def message_weight(self, message: discord.Message, repeated: bool) -> float:
        content = message.content or ""
        w = self.weights
        mentions = len(getattr(message, "mentions", []) or []) + len(getattr(message, "role_mentions", []) or [])
        media = len(getattr(message, "attachments", []) or []) + len(getattr(message, "embeds", []) or [])
        return (
            w.base
            + w.char * len(content)
            + w.line * content.count("\n")
            + w.mention * mentions
            + w.attachment * media
            + (w.repeat if repeated else 0.0)
        )

    def decayed(self, pressure: float, last_seen_at: Optional[float], now: float) -> float:
        if last_seen_at is None or pressure <= 0:
            return 0.0
        elapsed = max(0.0, now - last_seen_at)
        if elapsed == 0:
            return pressure
        return max(0.0, pressure - elapsed * self.decay_per_second)

    def current_pressure(self, message: discord.Message) -> float:
        """Pressure of the message author right now, without adding anything."""
        state = self.states.peek(subject_key(message))
        if state is None:
            return 0.0
        return self.decayed(state.pressure, state.last_seen_at, self.clock())

    async def evaluate(self, message: discord.Message) -> Optional[Verdict]:
        now = self.clock()
        state = self.states.get(subject_key(message))

        content = message.content or ""
        repeated = bool(content) and content == state.last_seen_content

        state.pressure = self.decayed(state.pressure, state.last_seen_at, now) + self.message_weight(message, repeated)
        state.last_seen_at = now
        state.last_seen_content = content

        if state.pressure < self.threshold:
            return None

        state.pressure = 0.0
        return self.make_verdict(message)
