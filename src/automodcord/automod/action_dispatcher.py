"""
Carries out the punishment attached to a verdict.

For every verdict the dispatcher:
    1. Runs the punishment's platform action (delete, roleban, kick, ban,
       softban, whisper or nothing).
    2. Purges the verdict's extra messages, best effort.
    3. Announces the outcome in the channel, unless the punishment is not
       announced, the action failed, or the channel is silenced.
    4. Writes exactly one moderation log entry, whatever happened above.

Platform failures are caught here and recorded on the returned
:class:`DispatchOutcome`; they never propagate to the engine.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import discord

from automodcord.automod.automod_exceptions import NotFound, PermissionDenied, PlatformError
from automodcord.automod.modlog import ModLog
from automodcord.automod.platform_actions import PlatformActions
from automodcord.automod.silent_channels import SilentChannels
from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.datatypes.automod_datatypes import PunishmentType, Verdict
from automodcord.datatypes.discord_datatypes import ChannelID, UserID
from automodcord.util.logger import get_logger

logger = get_logger("action_dispatcher")

MODLOG_CATEGORY = "automod_action"
MODLOG_EMOJI = "\U0001F432"
MODLOG_TITLE = "Automod"

ANNOUNCED_PUNISHMENTS = frozenset({
    PunishmentType.DELETE,
    PunishmentType.ROLEBAN,
    PunishmentType.KICK,
    PunishmentType.BAN,
    PunishmentType.SOFTBAN,
    PunishmentType.WHISPER,
})

WhisperKey = Tuple[ChannelID, UserID]


@dataclass(slots=True)
class DispatchOutcome:
    """
    Result of dispatching one verdict.

    Attributes:
        verdict: The dispatched verdict.
        action: Past tense description of what was done, ``None`` if nothing was.
        announced: Whether a public announcement was posted.
        logged: Whether the modlog entry was posted.
        error: The platform failure that stopped the punishment, if any.
    """

    verdict: Verdict
    action: Optional[str] = None
    announced: bool = False
    logged: bool = False
    error: Optional[PlatformError] = None


@dataclass(slots=True)
class PendingWhisper:
    channel: discord.abc.GuildChannel
    member: discord.Member
    prior: Optional[discord.PermissionOverwrite]


def format_user(user: discord.abc.User) -> str:
    return f"**{discord.utils.escape_markdown(user.name)}** ({user.id})"


def _copy_overwrite(overwrite: Optional[discord.PermissionOverwrite], **changes) -> discord.PermissionOverwrite:
    copy = discord.PermissionOverwrite.from_pair(*overwrite.pair()) if overwrite else discord.PermissionOverwrite()
    copy.update(**changes)
    return copy


class ActionDispatcher:
    """
    Maps verdict punishments to platform actions.

    Args:
        platform: Discord operations used to punish.
        modlog: Moderation log writer.
        config_manager: Per-guild announcement prefix and roleban role.
        silent_channels: Channels whose announcements are currently muted.
        ban_delete_message_seconds: History purged by ban and softban.
        whisper_restore_seconds: Delay before a whispered member sees the channel
            again; ``None`` leaves the restriction until :meth:`restore_whisper`.
    """

    def __init__(
        self,
        platform: PlatformActions,
        modlog: ModLog,
        config_manager: GuildAutomodConfigManager,
        silent_channels: SilentChannels,
        *,
        ban_delete_message_seconds: int = 86400,
        whisper_restore_seconds: Optional[float] = 5.0,
    ) -> None:
        self.platform = platform
        self.modlog = modlog
        self.config_manager = config_manager
        self.silent_channels = silent_channels
        self.ban_delete_message_seconds = ban_delete_message_seconds
        self.whisper_restore_seconds = whisper_restore_seconds
        self._whispers: Dict[WhisperKey, PendingWhisper] = {}
        self._restore_tasks: Dict[WhisperKey, asyncio.Task] = {}
        # Held across overwrite capture and restore.
        self._whisper_lock = asyncio.Lock()

    async def dispatch(self, verdict: Verdict) -> DispatchOutcome:
        message = verdict.message
        member = message.author
        punishment = verdict.punishment
        outcome = DispatchOutcome(verdict)
        use_prefix = True
        extra: Optional[str] = None
        trigger_deleted = False

        try:
            match punishment.type:
                case PunishmentType.DELETE:
                    await self.platform.delete_message(message)
                    trigger_deleted = True
                    outcome.action = "silenced (message deleted)"
                case PunishmentType.ROLEBAN:
                    use_prefix = await self._roleban(message, member, verdict.reason)
                    outcome.action = "rolebanned"
                case PunishmentType.KICK:
                    await self.platform.kick(member, verdict.reason)
                    outcome.action = "kicked"
                case PunishmentType.BAN:
                    await self.platform.ban(member, verdict.reason, self.ban_delete_message_seconds)
                    outcome.action = "banned"
                case PunishmentType.SOFTBAN:
                    await self.platform.ban(member, verdict.reason, self.ban_delete_message_seconds)
                    outcome.action = "banned"
                    await self.platform.unban(member.guild, UserID(member.id), reason=f"Softban: {verdict.reason}")
                    outcome.action = "softbanned"
                case PunishmentType.WHISPER:
                    await self._whisper(message, member, punishment.message)
                    outcome.action = "whispered to"
                    extra = f"Told them: {punishment.message}"
                case PunishmentType.LOG:
                    outcome.action = "nothing (log)"
                case PunishmentType.NONE:
                    pass
        except PlatformError as exc:
            outcome.error = exc
            level = "warning" if isinstance(exc, (PermissionDenied, NotFound)) else "error"
            getattr(logger, level)(
                "[ACTION DISPATCHER] %s for rule %s on %s in guild %s failed: %s",
                punishment, verdict.rule_id, member.id, message.guild.id, exc,
            )

        await self._purge_side_effects(verdict, skip_trigger=trigger_deleted)

        summary = f"{format_user(member)} was **{outcome.action or 'nothing'}** for *{verdict.reason}*"

        if (
            outcome.action
            and outcome.error is None
            and punishment.type in ANNOUNCED_PUNISHMENTS
            and not self.silent_channels.is_silent(message.channel.id)
        ):
            outcome.announced = await self._announce(message, summary, use_prefix)

        body = summary
        if outcome.error is not None:
            body += f"\n> *Attempted {punishment.type}: {outcome.error}*"
        if extra:
            body += f"\n> *{extra}*"
        body += f"\n> {message.jump_url}"
        outcome.logged = await self.modlog.create_log_entry(
            message.guild, MODLOG_CATEGORY, MODLOG_EMOJI, MODLOG_TITLE, body
        )
        return outcome

    async def _roleban(self, message: discord.Message, member: discord.Member, reason: str) -> bool:
        """Add the roleban role, or restrict sending in the channel if it is already held.

        Returns whether the announcement should carry the guild's prefix.
        """
        role_id = self.config_manager.get(message.guild.id).roleban_role_id
        if role_id is None:
            raise NotFound("roleban", f"guild {message.guild.id} has no roleban role configured")

        if any(role.id == int(role_id) for role in member.roles):
            channel = message.channel
            prior = self.platform.get_channel_permission_overwrite(channel, member)
            await self.platform.set_channel_permission_overwrite(
                channel, member, _copy_overwrite(prior, send_messages=False), reason=f"Automod: {reason}"
            )
            return False

        await self.platform.add_role(member, role_id, reason=f"Automod: {reason}")
        return True

    async def _whisper(self, message: discord.Message, member: discord.Member, text: str) -> None:
        channel = message.channel
        await self.platform.send_message(channel, f"{member.mention}, {text}")

        key = (ChannelID(channel.id), UserID(member.id))
        async with self._whisper_lock:
            pending = self._whispers.get(key)
            # A whisper already in effect keeps the overwrite from before the first one.
            prior = pending.prior if pending else self.platform.get_channel_permission_overwrite(channel, member)

            await self.platform.set_channel_permission_overwrite(
                channel, member, _copy_overwrite(prior, view_channel=False), reason=f"Whisper: {text}"
            )
            self._whispers[key] = PendingWhisper(channel, member, prior)

        if self.whisper_restore_seconds is not None:
            previous = self._restore_tasks.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._restore_tasks[key] = asyncio.create_task(self._restore_later(key, self.whisper_restore_seconds))

    async def _restore_later(self, key: WhisperKey, delay: float) -> None:
        await asyncio.sleep(delay)
        self._restore_tasks.pop(key, None)
        await self.restore_whisper(*key)

    def pending_whispers(self) -> List[WhisperKey]:
        return list(self._whispers)

    async def restore_whisper(self, channel_id: ChannelID, user_id: UserID) -> bool:
        """
        Give a whispered member their previous view of the channel back.

        Restores the overwrite that existed before the whisper, or removes the
        member's overwrite if there was none. Calling it again is a no-op.
        The whisper stays pending until the overwrite call returns.
        """
        key = (ChannelID(channel_id), UserID(user_id))
        async with self._whisper_lock:
            pending = self._whispers.get(key)
            if pending is None:
                return False
            try:
                await self.platform.set_channel_permission_overwrite(
                    pending.channel, pending.member, pending.prior, reason="Whisper over"
                )
            except PlatformError as exc:
                self._whispers.pop(key, None)
                logger.warning("[ACTION DISPATCHER] Could not restore whisper overwrite for %s: %s", user_id, exc)
                return False
            self._whispers.pop(key, None)
            return True

    async def _purge_side_effects(self, verdict: Verdict, *, skip_trigger: bool) -> None:
        deletes = [
            m for m in verdict.side_effects_to_delete
            if not (skip_trigger and m.id == verdict.message.id)
        ]
        if not deletes:
            return
        try:
            if len(deletes) == 1:
                await self.platform.delete_message(deletes[0])
            else:
                await self.platform.bulk_delete_messages(deletes)
        except PlatformError as exc:
            logger.debug("[ACTION DISPATCHER] Side effect purge for rule %s incomplete: %s", verdict.rule_id, exc)

    async def _announce(self, message: discord.Message, summary: str, use_prefix: bool) -> bool:
        prefix = self.config_manager.get(message.guild.id).prepend if use_prefix else ""
        try:
            await self.platform.send_message(message.channel, prefix + summary)
        except PlatformError as exc:
            logger.warning("[ACTION DISPATCHER] Could not announce in channel %s: %s", message.channel.id, exc)
            return False
        return True

    async def shutdown(self) -> None:
        """Cancel scheduled whisper restores and restore every pending whisper now."""
        for task in self._restore_tasks.values():
            task.cancel()
        self._restore_tasks.clear()
        for key in list(self._whispers):
            try:
                await self.restore_whisper(*key)
            except Exception:
                logger.exception("[ACTION DISPATCHER] Restoring whisper for %s in channel %s failed", key[1], key[0])
                self._whispers.pop(key, None)
