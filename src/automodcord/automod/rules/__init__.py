"""
Automod rule kinds.

``RULE_TYPES`` is the single registration point: adding a kind means adding a
:class:`~automodcord.datatypes.automod_datatypes.RuleKind` member and a rule
class implementing ``evaluate``, then listing it here.
"""

from __future__ import annotations

import time
from typing import Dict, Type

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import Clock
from automodcord.automod.rules.base import Rule, StrikeRule
from automodcord.automod.rules.blacklist import BlacklistRule
from automodcord.automod.rules.embeds import EmbedsRule
from automodcord.automod.rules.emoji_only import EmojiOnlyRule
from automodcord.automod.rules.everyone import EveryoneRule
from automodcord.automod.rules.forbidden import ForbiddenCharsRule
from automodcord.automod.rules.invite_ad import InviteAdRule
from automodcord.automod.rules.pressure import PressureRule
from automodcord.automod.rules.regex import RegexRule
from automodcord.automod.rules.repeats import RepeatsRule
from automodcord.datatypes.automod_datatypes import RuleDefinition, RuleKind

RULE_TYPES: Dict[RuleKind, Type[Rule]] = {
    RuleKind.EVERYONE: EveryoneRule,
    RuleKind.FORBIDDEN: ForbiddenCharsRule,
    RuleKind.REPEATS: RepeatsRule,
    RuleKind.AD: InviteAdRule,
    RuleKind.BLACKLIST: BlacklistRule,
    RuleKind.EMBEDS: EmbedsRule,
    RuleKind.REGEX: RegexRule,
    RuleKind.EMOJI_ONLY: EmojiOnlyRule,
    RuleKind.PRESSURE: PressureRule,
}

RULE_DOCS: Dict[RuleKind, str] = {
    RuleKind.AD: "Counts server invites sent that are not to the current server",
    RuleKind.BLACKLIST: "Blacklists phrases, each occurrence in a message counts as a strike (ie. `'foo' 'some thing' 'bar'`)",
    RuleKind.EMBEDS: "Stops users from posting the same embed over and over",
    RuleKind.EMOJI_ONLY: "Strikes on messages containing only emojis",
    RuleKind.EVERYONE: "Strikes on attempted @everyone/@here pings. Role ids given as parameters count as @everyone",
    RuleKind.FORBIDDEN: "List of characters that may not be posted, each one counts as a strike",
    RuleKind.REGEX: "Strikes when a regex matches, one regex per rule: `'r(e)gex.*' 'flags'` or `'/r(e)gex.*/flags'`",
    RuleKind.REPEATS: "Strikes on repeated messages (ie. copy/paste). Parameters are prefixes to ignore",
    RuleKind.PRESSURE: "Experimental, pressure based spam detection. Optional `key=value` weight overrides",
}


def build_rule(definition: RuleDefinition, *, clock: Clock = time.monotonic) -> Rule:
    """
    Construct the rule evaluator for ``definition``.

    Raises:
        ConfigurationError: If the kind is not registered or its parameters are invalid.
    """
    rule_type = RULE_TYPES.get(definition.kind)
    if rule_type is None:
        raise ConfigurationError(f"No evaluator registered for rule kind '{definition.kind}'")
    return rule_type.from_definition(definition, clock=clock)


__all__ = [
    "RULE_DOCS",
    "RULE_TYPES",
    "BlacklistRule",
    "EmbedsRule",
    "EmojiOnlyRule",
    "EveryoneRule",
    "ForbiddenCharsRule",
    "InviteAdRule",
    "PressureRule",
    "RegexRule",
    "RepeatsRule",
    "Rule",
    "StrikeRule",
    "build_rule",
]
