from __future__ import annotations

import re
from typing import List, Tuple

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

# Patterns written for JavaScript carry these; they have no effect on a search here
IGNORED_FLAGS = {"g", "u"}

SLASH_FORM = re.compile(r"^/(?P<pattern>.+)/(?P<flags>[a-z]*)$", re.DOTALL)


def parse_regex_parameters(parameters: List[str]) -> Tuple[str, str]:
    """
    Split the rule parameters into ``(pattern, flags)``.

    Accepts ``['pattern']``, ``['pattern', 'flags']`` or ``['/pattern/flags']``.
    """
    if not parameters or len(parameters) > 2:
        raise ConfigurationError(
            "The 'regex' rule takes a pattern and optional flags: `'r(e)gex.*' 'i'` or `'/r(e)gex.*/i'`"
        )

    if len(parameters) == 1:
        match = SLASH_FORM.match(parameters[0])
        if match:
            return match.group("pattern"), match.group("flags")
        return parameters[0], ""

    return parameters[0], parameters[1]


def compile_flags(flags: str) -> int:
    compiled = 0
    for flag in flags.lower():
        if flag in IGNORED_FLAGS:
            continue
        if flag not in REGEX_FLAGS:
            raise ConfigurationError(f"Unknown regex flag '{flag}'. Valid flags: {''.join(REGEX_FLAGS)}")
        compiled |= REGEX_FLAGS[flag]
    return compiled


class RegexRule(StrikeRule):
    """Strikes once per non-empty match of a single configured pattern."""

    kind = RuleKind.REGEX

    def configure(self, parameters: List[str]) -> None:
        pattern, flags = parse_regex_parameters(parameters)
        try:
            self.pattern = re.compile(pattern, compile_flags(flags))
        except re.error as exc:
            raise ConfigurationError(f"Invalid regex `{pattern}`: {exc}") from exc

    @property
    def name(self) -> str:
        return f"Matched regex `{self.pattern.pattern}`"

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        return sum(1 for match in self.pattern.finditer(message.content or "") if match.group(0))
