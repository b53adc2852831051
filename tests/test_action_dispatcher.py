"""Tests for the action dispatcher, driven through PlatformActions against fake Discord objects."""

import asyncio

import discord
import pytest

from automodcord.automod.action_dispatcher import ActionDispatcher
from automodcord.automod.automod_exceptions import NotFound, PermissionDenied
from automodcord.automod.modlog import ModLog
from automodcord.automod.platform_actions import PlatformActions
from automodcord.automod.silent_channels import SilentChannels
from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.datatypes.automod_datatypes import Punishment, Verdict
from automodcord.repositories.automod_config_repo import AutomodConfigRow

from fakes import FakeConfigRepository, FakeMember, Sender, http_error, make_guild

REASON = "Blacklisted phrase"


class Setup:
    def __init__(self, whisper_restore_seconds=None, roleban=True, prepend="<@&9> "):
        self.guild = make_guild()
        self.modlog_channel = self.guild.add_channel()
        self.roleban_role = self.guild.add_role(2, "muted")
        self.sender = Sender(self.guild)
        self.member = self.sender.member
        self.channel = self.sender.channel
        row = AutomodConfigRow(
            guild_id=self.guild.id,
            prepend=prepend,
            roleban_role=self.roleban_role.id if roleban else None,
            modlog_channel=self.modlog_channel.id,
        )
        self.config_manager = GuildAutomodConfigManager(FakeConfigRepository({self.guild.id: row}))
        self.silent_channels = SilentChannels(3)
        self.dispatcher = ActionDispatcher(
            PlatformActions(),
            ModLog(self.config_manager),
            self.config_manager,
            self.silent_channels,
            ban_delete_message_seconds=86400,
            whisper_restore_seconds=whisper_restore_seconds,
        )

    async def start(self):
        await self.config_manager.async_init()
        return self

    def verdict(self, punishment, message=None, deletes=()):
        message = message or self.sender.message("foo")
        return Verdict(
            rule_id=1,
            punishment=Punishment.parse(punishment),
            reason=REASON,
            message=message,
            side_effects_to_delete=list(deletes),
        )

    def tag(self):
        return f"**{self.member.name}** ({self.member.id})"

    def announcements(self):
        return [entry["content"] for entry in self.channel.sent if entry["content"] and " was **" in entry["content"]]

    def modlog_bodies(self):
        return [entry["embed"].description for entry in self.modlog_channel.sent]


@pytest.mark.asyncio
async def test_delete_removes_message_and_announces_with_prefix():
    s = await Setup().start()
    message = s.sender.message("foo")

    outcome = await s.dispatcher.dispatch(s.verdict("delete", message))

    assert message.deleted
    assert outcome.action == "silenced (message deleted)"
    assert outcome.error is None
    assert outcome.announced and outcome.logged
    expected = f"{s.tag()} was **silenced (message deleted)** for *{REASON}*"
    assert s.announcements() == ["<@&9> " + expected]
    assert s.modlog_bodies() == [f"{expected}\n> {message.jump_url}"]


@pytest.mark.asyncio
async def test_modlog_entry_uses_automod_category():
    s = await Setup().start()
    await s.dispatcher.dispatch(s.verdict("log"))

    embed = s.modlog_channel.sent[0]["embed"]
    assert embed.title == "\U0001F432 Automod"
    assert embed.footer.text == "automod_action"


@pytest.mark.asyncio
async def test_kick_when_allowed():
    s = await Setup().start()
    outcome = await s.dispatcher.dispatch(s.verdict("kick"))

    assert s.member.kicked == [REASON]
    assert outcome.action == "kicked"
    assert s.announcements() == [f"<@&9> {s.tag()} was **kicked** for *{REASON}*"]


@pytest.mark.asyncio
async def test_unkickable_member_is_not_announced_but_still_logged():
    s = await Setup().start()
    s.member.top_role.position = 50

    outcome = await s.dispatcher.dispatch(s.verdict("kick"))

    assert s.member.kicked == []
    assert isinstance(outcome.error, PermissionDenied)
    assert outcome.action is None
    assert not outcome.announced
    assert s.announcements() == []
    [body] = s.modlog_bodies()
    assert body.startswith(f"{s.tag()} was **nothing** for *{REASON}*")
    assert "Attempted kick" in body


@pytest.mark.asyncio
async def test_guild_owner_cannot_be_kicked():
    s = await Setup().start()
    s.guild.owner_id = s.member.id
    outcome = await s.dispatcher.dispatch(s.verdict("kick"))
    assert isinstance(outcome.error, PermissionDenied)


@pytest.mark.asyncio
async def test_ban_purges_a_day_of_messages():
    s = await Setup().start()
    outcome = await s.dispatcher.dispatch(s.verdict("ban"))

    assert s.guild.bans == [(s.member.id, REASON, 86400)]
    assert s.guild.unbans == []
    assert outcome.action == "banned"


@pytest.mark.asyncio
async def test_softban_bans_then_unbans():
    s = await Setup().start()
    outcome = await s.dispatcher.dispatch(s.verdict("softban"))

    assert s.guild.bans == [(s.member.id, REASON, 86400)]
    assert s.guild.unbans == [s.member.id]
    assert outcome.action == "softbanned"
    assert s.announcements() == [f"<@&9> {s.tag()} was **softbanned** for *{REASON}*"]


@pytest.mark.asyncio
async def test_ban_refused_by_discord_is_isolated():
    s = await Setup().start()
    s.guild.ban_error = http_error(discord.Forbidden, 403, "Missing Permissions")

    outcome = await s.dispatcher.dispatch(s.verdict("ban"))

    assert isinstance(outcome.error, PermissionDenied)
    assert outcome.action is None
    assert s.announcements() == []
    assert outcome.logged


@pytest.mark.asyncio
async def test_roleban_adds_configured_role():
    s = await Setup().start()
    outcome = await s.dispatcher.dispatch(s.verdict("roleban"))

    assert s.roleban_role in s.member.roles
    assert outcome.action == "rolebanned"
    assert s.announcements() == [f"<@&9> {s.tag()} was **rolebanned** for *{REASON}*"]


@pytest.mark.asyncio
async def test_roleban_of_already_rolebanned_member_restricts_channel_without_prefix():
    s = await Setup().start()
    s.member.roles.append(s.roleban_role)

    outcome = await s.dispatcher.dispatch(s.verdict("roleban"))

    overwrite = s.channel.overwrites[s.member.id]
    assert overwrite.send_messages is False
    assert outcome.action == "rolebanned"
    assert s.announcements() == [f"{s.tag()} was **rolebanned** for *{REASON}*"]


@pytest.mark.asyncio
async def test_roleban_without_configured_role_fails_softly():
    s = await Setup(roleban=False).start()
    outcome = await s.dispatcher.dispatch(s.verdict("roleban"))

    assert isinstance(outcome.error, NotFound)
    assert s.announcements() == []
    assert outcome.logged


@pytest.mark.asyncio
async def test_whisper_hides_channel_and_restores_by_removing_overwrite():
    s = await Setup().start()

    outcome = await s.dispatcher.dispatch(s.verdict("whisper:stop that"))

    assert s.channel.sent[0]["content"] == f"{s.member.mention}, stop that"
    assert s.channel.overwrites[s.member.id].view_channel is False
    assert outcome.action == "whispered to"
    assert s.announcements() == [f"<@&9> {s.tag()} was **whispered to** for *{REASON}*"]
    assert "> *Told them: stop that*" in s.modlog_bodies()[0]
    assert not any("stop that" in text for text in s.announcements())

    assert await s.dispatcher.restore_whisper(s.channel.id, s.member.id) is True
    assert s.member.id not in s.channel.overwrites
    assert s.channel.permission_calls[-1][1] is None

    assert await s.dispatcher.restore_whisper(s.channel.id, s.member.id) is False


@pytest.mark.asyncio
async def test_whisper_restores_prior_overwrite():
    s = await Setup().start()
    s.channel.overwrites[s.member.id] = discord.PermissionOverwrite(send_messages=False)

    await s.dispatcher.dispatch(s.verdict("whisper:hush"))
    hidden = s.channel.overwrites[s.member.id]
    assert hidden.view_channel is False
    assert hidden.send_messages is False

    # a second whisper must not capture the hidden state as the one to restore
    await s.dispatcher.dispatch(s.verdict("whisper:hush again"))
    await s.dispatcher.restore_whisper(s.channel.id, s.member.id)

    restored = s.channel.overwrites[s.member.id]
    assert restored.send_messages is False
    assert restored.view_channel is None


@pytest.mark.asyncio
async def test_whisper_is_restored_automatically():
    s = await Setup(whisper_restore_seconds=0.01).start()

    await s.dispatcher.dispatch(s.verdict("whisper:brb"))
    assert s.dispatcher.pending_whispers()

    await asyncio.sleep(0.1)
    assert s.dispatcher.pending_whispers() == []
    assert s.member.id not in s.channel.overwrites


@pytest.mark.asyncio
async def test_shutdown_restores_pending_whispers():
    s = await Setup(whisper_restore_seconds=60).start()
    await s.dispatcher.dispatch(s.verdict("whisper:bye"))

    await s.dispatcher.shutdown()

    assert s.dispatcher.pending_whispers() == []
    assert s.member.id not in s.channel.overwrites


@pytest.mark.asyncio
async def test_shutdown_keeps_restoring_after_a_failed_restore():
    s = await Setup(whisper_restore_seconds=60).start()
    other = Sender(s.guild)
    await s.dispatcher.dispatch(s.verdict("whisper:bye"))
    await s.dispatcher.dispatch(s.verdict("whisper:bye", message=other.message("foo")))
    s.channel.permission_error = RuntimeError("Session is closed")

    await s.dispatcher.shutdown()

    assert s.dispatcher.pending_whispers() == []
    assert other.member.id not in other.channel.overwrites


@pytest.mark.asyncio
async def test_whisper_during_restore_keeps_the_original_overwrite():
    s = await Setup().start()
    await s.dispatcher.dispatch(s.verdict("whisper:first"))
    s.channel.permission_gate = asyncio.Event()

    restore = asyncio.create_task(s.dispatcher.restore_whisper(s.channel.id, s.member.id))
    await asyncio.sleep(0)
    second = asyncio.create_task(s.dispatcher.dispatch(s.verdict("whisper:second")))
    for _ in range(5):
        await asyncio.sleep(0)
    s.channel.permission_gate.set()

    assert await restore is True
    await second
    assert s.channel.overwrites[s.member.id].view_channel is False

    assert await s.dispatcher.restore_whisper(s.channel.id, s.member.id) is True
    assert s.member.id not in s.channel.overwrites


@pytest.mark.asyncio
@pytest.mark.parametrize("punishment, action", [("log", "nothing (log)"), ("none", None)])
async def test_log_and_none_are_never_announced(punishment, action):
    s = await Setup().start()
    message = s.sender.message("foo")
    outcome = await s.dispatcher.dispatch(s.verdict(punishment, message))

    assert outcome.action == action
    assert not message.deleted
    assert s.announcements() == []
    [body] = s.modlog_bodies()
    assert f"was **{action or 'nothing'}**" in body


@pytest.mark.asyncio
async def test_silenced_channel_still_punishes_but_does_not_announce():
    s = await Setup().start()
    s.silent_channels.set(s.channel.id, 1)
    message = s.sender.message("foo")

    outcome = await s.dispatcher.dispatch(s.verdict("delete", message))

    assert message.deleted
    assert not outcome.announced
    assert s.announcements() == []
    assert outcome.logged


@pytest.mark.asyncio
async def test_side_effects_are_bulk_deleted_without_the_already_deleted_trigger():
    s = await Setup().start()
    first, second, trigger = (s.sender.message("x") for _ in range(3))

    await s.dispatcher.dispatch(s.verdict("delete", trigger, deletes=[first, second, trigger]))

    assert trigger.deleted
    assert s.channel.bulk_deleted == [[first, second]]


@pytest.mark.asyncio
async def test_single_side_effect_uses_plain_delete():
    s = await Setup().start()
    extra = s.sender.message("x")

    await s.dispatcher.dispatch(s.verdict("log", deletes=[extra]))

    assert extra.deleted
    assert s.channel.bulk_deleted == []


@pytest.mark.asyncio
async def test_side_effect_delete_failure_is_swallowed():
    s = await Setup().start()
    gone = s.sender.message("x")
    gone.delete_error = http_error(discord.NotFound, 404, "Unknown Message")

    outcome = await s.dispatcher.dispatch(s.verdict("log", deletes=[gone]))

    assert outcome.error is None
    assert outcome.logged


@pytest.mark.asyncio
async def test_modlog_failure_does_not_affect_outcome():
    s = await Setup().start()
    s.modlog_channel.fail_send = http_error(discord.Forbidden, 403, "Missing Access")

    outcome = await s.dispatcher.dispatch(s.verdict("kick"))

    assert outcome.action == "kicked"
    assert outcome.announced
    assert not outcome.logged


@pytest.mark.asyncio
async def test_no_modlog_channel_configured():
    s = await Setup().start()
    await s.config_manager.update(s.guild.id, modlog_channel_id=None)

    outcome = await s.dispatcher.dispatch(s.verdict("kick"))
    assert outcome.action == "kicked"
    assert not outcome.logged


@pytest.mark.asyncio
async def test_announcement_failure_is_isolated():
    s = await Setup().start()
    s.channel.fail_send = http_error(discord.Forbidden, 403, "Missing Permissions")

    outcome = await s.dispatcher.dispatch(s.verdict("kick"))

    assert outcome.action == "kicked"
    assert not outcome.announced
    assert outcome.logged
