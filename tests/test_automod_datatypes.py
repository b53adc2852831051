"""Tests for rule kinds, punishments, definitions and typed ids."""

import pytest

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.datatypes.automod_datatypes import Punishment, PunishmentType, RuleDefinition, RuleKind
from automodcord.datatypes.discord_datatypes import ChannelID, GuildID, UserID, subject_key

from fakes import Sender, make_guild


@pytest.mark.parametrize("raw, expected", [
    ("delete", PunishmentType.DELETE),
    ("ROLEBAN", PunishmentType.ROLEBAN),
    (" kick ", PunishmentType.KICK),
    ("softban", PunishmentType.SOFTBAN),
    ("log", PunishmentType.LOG),
    ("none", PunishmentType.NONE),
])
def test_punishment_parse_plain_tags(raw, expected):
    punishment = Punishment.parse(raw)
    assert punishment.type is expected
    assert punishment.message == ""


def test_whisper_keeps_message_case_and_colons():
    punishment = Punishment.parse("Whisper: Please stop: now")
    assert punishment.type is PunishmentType.WHISPER
    assert punishment.message == "Please stop: now"
    assert str(punishment) == "whisper:Please stop: now"
    assert Punishment.parse(str(punishment)) == punishment


@pytest.mark.parametrize("raw", ["whisper", "whisper:   ", "mute", ""])
def test_bad_punishments_are_configuration_errors(raw):
    with pytest.raises(ConfigurationError):
        Punishment.parse(raw)


def test_rule_kind_parse():
    assert RuleKind.parse("EmojiOnly") is RuleKind.EMOJI_ONLY
    assert RuleKind.parse(RuleKind.AD) is RuleKind.AD
    with pytest.raises(ConfigurationError, match="Valid kinds"):
        RuleKind.parse("caps")


def test_definition_validates_limits():
    with pytest.raises(ConfigurationError):
        RuleDefinition(GuildID(1), 1, RuleKind.REPEATS, Punishment.parse("delete"), 0, 10)
    with pytest.raises(ConfigurationError):
        RuleDefinition(GuildID(1), 1, RuleKind.REPEATS, Punishment.parse("delete"), 1, -1)


def test_definition_summary():
    definition = RuleDefinition(
        GuildID(1), 3, RuleKind.BLACKLIST, Punishment.parse("roleban"), 3, 15, ["some words", "nya"]
    )
    assert definition.summary() == "[3] blacklist {15 s} [some words, nya] -> # roleban"


def test_snowflake_equality_is_per_type():
    assert GuildID(5) == GuildID("5") == 5 == GuildID(5)
    assert GuildID(5) != UserID(5)
    assert len({ChannelID(1), ChannelID("1")}) == 1
    with pytest.raises(ValueError):
        UserID(-1)
    with pytest.raises(ValueError):
        UserID(True)


def test_subject_key_is_guild_and_author():
    sender = Sender(make_guild())
    key = subject_key(sender.message("hi"))
    assert key == (GuildID(sender.guild.id), UserID(sender.member.id))
