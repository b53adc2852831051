import pytest
import pytest_asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_registry import RuleRegistry
from automodcord.automod.silent_channels import SilentChannels
from automodcord.bot.cogs import automod_cmds, message_listener
from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.datatypes.automod_datatypes import Punishment, RuleDefinition, RuleKind
from automodcord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID

from fakes import FakeConfigRepository, FakeRuleStore

GUILD_ID = 10


class Ctx:
    def __init__(self, guild_id=GUILD_ID):
        self.guild_id = guild_id
        self.respond = AsyncMock()

    @property
    def text(self):
        return self.respond.await_args.args[0]


@pytest_asyncio.fixture
async def cog():
    config_manager = GuildAutomodConfigManager(FakeConfigRepository())
    await config_manager.async_init()
    registry = RuleRegistry(FakeRuleStore())
    await registry.initialize()
    engine = SimpleNamespace(registry=registry, config_manager=config_manager, silent_channels=SilentChannels())
    return automod_cmds.AutomodCommandsCog(SimpleNamespace(), engine)


def callback(name):
    cb = getattr(getattr(automod_cmds.AutomodCommandsCog, name), "callback", None)
    assert cb is not None
    return cb


def test_split_parameters_keeps_quoted_words():
    assert automod_cmds.split_parameters('"some words" nya') == ["some words", "nya"]
    assert automod_cmds.split_parameters(None) == []
    assert automod_cmds.split_parameters("") == []


def test_split_parameters_rejects_unbalanced_quotes():
    with pytest.raises(ConfigurationError):
        automod_cmds.split_parameters('"oops')


def test_setup_adds_cogs():
    captured = []
    fake_bot = SimpleNamespace(add_cog=captured.append)
    engine = SimpleNamespace(registry=None, config_manager=None, silent_channels=None)

    automod_cmds.setup(fake_bot, engine)
    message_listener.setup(fake_bot, engine)

    assert isinstance(captured[0], automod_cmds.AutomodCommandsCog)
    assert isinstance(captured[1], message_listener.MessageListenerCog)


def test_help_lists_every_punishment():
    for name in ("none", "delete", "roleban", "kick", "ban", "softban", "whisper:<message>", "log"):
        assert f"`{name}`" in automod_cmds.HELP_TEXT


@pytest.mark.asyncio
async def test_add_view_and_delete_rule(cog):
    ctx = Ctx()
    await callback("add")(cog, ctx, "blacklist", "roleban", 3, 15, '"some words" nya')
    assert "[1] blacklist" in ctx.text
    assert cog.registry.definitions(GUILD_ID)[0].parameters == ["some words", "nya"]

    ctx = Ctx()
    await callback("view")(cog, ctx)
    assert "[1] blacklist" in ctx.text
    assert "roleban" in ctx.text

    ctx = Ctx()
    await callback("delete")(cog, ctx, 1)
    assert ctx.text.startswith("Deleted rule")
    assert cog.registry.definitions(GUILD_ID) == ()


@pytest.mark.asyncio
async def test_add_reports_configuration_errors(cog):
    ctx = Ctx()
    await callback("add")(cog, ctx, "regex", "delete", 1, 10, "(")

    assert ctx.text.startswith("Could not create rule")
    assert cog.registry.definitions(GUILD_ID) == ()


@pytest.mark.asyncio
async def test_delete_unknown_rule(cog):
    ctx = Ctx()
    await callback("delete")(cog, ctx, 99)
    assert ctx.text == "There is no rule with id 99."


@pytest.mark.asyncio
async def test_rules_that_failed_to_load_can_be_seen_and_deleted(cog):
    broken = RuleDefinition(GuildID(GUILD_ID), 3, RuleKind.REGEX, Punishment.parse("delete"), 1, 30, ["("])
    store = FakeRuleStore({GUILD_ID: [broken]}, unreadable={GUILD_ID: {4}})
    cog.registry = RuleRegistry(store)
    await cog.registry.initialize()

    ctx = Ctx()
    await callback("view")(cog, ctx)
    assert "[3] regex" in ctx.text
    assert "failed to load" in ctx.text

    ctx = Ctx()
    await callback("delete")(cog, ctx, 3)
    assert ctx.text.startswith("Deleted rule")

    ctx = Ctx()
    await callback("delete")(cog, ctx, 4)
    assert ctx.text == "Deleted unreadable rule 4."
    assert store.stored_ids(GUILD_ID) == set()

    ctx = Ctx()
    await callback("view")(cog, ctx)
    assert ctx.text == "There are no automod rules in this server."


@pytest.mark.asyncio
async def test_view_without_rules(cog):
    ctx = Ctx()
    await callback("view")(cog, ctx)
    assert ctx.text == "There are no automod rules in this server."


@pytest.mark.asyncio
async def test_commands_require_guild_context(cog):
    ctx = Ctx(guild_id=None)
    await callback("view")(cog, ctx)
    ctx.respond.assert_awaited_once_with("This command can only be used in a server.", ephemeral=True)


@pytest.mark.asyncio
async def test_silent_and_clearsilent(cog):
    channel = SimpleNamespace(id=55, mention="<#55>")
    cog.silent_channels.set(55, 2)

    ctx = Ctx()
    await callback("silent")(cog, ctx, channel)
    assert ctx.text == "Silence count for <#55>: 2"

    ctx = Ctx()
    await callback("clearsilent")(cog, ctx, channel)
    assert cog.silent_channels.get(55) == 0


@pytest.mark.asyncio
async def test_configure_updates_settings(cog):
    ctx = Ctx()
    role = SimpleNamespace(id=77)
    channel = SimpleNamespace(id=88)

    await callback("configure")(cog, ctx, "<@&1> ", "!ban !kick", role, channel)

    config = cog.config_manager.get(GUILD_ID)
    assert config.prepend == "<@&1> "
    assert config.silence_triggers == ["!ban", "!kick"]
    assert config.roleban_role_id == RoleID(77)
    assert config.modlog_channel_id == ChannelID(88)
    assert "`!ban`, `!kick`" in ctx.text

    ctx = Ctx()
    await callback("configure")(cog, ctx, "none", "none", None, None)
    config = cog.config_manager.get(GUILD_ID)
    assert config.prepend == ""
    assert config.silence_triggers == []
    assert config.roleban_role_id == RoleID(77)


@pytest.mark.asyncio
async def test_configure_without_changes_only_shows_settings(cog):
    ctx = Ctx()
    await callback("configure")(cog, ctx, None, None, None, None)

    assert cog.config_manager.repository.upserts == []
    assert "Prefix: none" in ctx.text


@pytest.mark.asyncio
async def test_message_listener_hands_messages_to_engine():
    engine = MagicMock()
    engine.handle_message = AsyncMock()
    listener = message_listener.MessageListenerCog(SimpleNamespace(), engine)
    message = SimpleNamespace(id=1, guild=SimpleNamespace(id=2), author=SimpleNamespace(bot=False))

    await listener.on_message(message)

    engine.handle_message.assert_awaited_once_with(message)


@pytest.mark.asyncio
async def test_message_listener_swallows_engine_errors():
    engine = MagicMock()
    engine.handle_message = AsyncMock(side_effect=RuntimeError("boom"))
    listener = message_listener.MessageListenerCog(SimpleNamespace(), engine)
    message = SimpleNamespace(id=1, guild=SimpleNamespace(id=2), author=SimpleNamespace(bot=False))

    await listener.on_message(message)


@pytest.mark.asyncio
async def test_message_listener_skips_direct_messages():
    engine = MagicMock()
    engine.handle_message = AsyncMock()
    listener = message_listener.MessageListenerCog(SimpleNamespace(), engine)

    await listener.on_message(SimpleNamespace(id=1, guild=None, author=SimpleNamespace(bot=False)))

    engine.handle_message.assert_not_awaited()
