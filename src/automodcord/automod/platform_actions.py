"""
Discord calls made on behalf of automod verdicts.

Every coroutine here either completes or raises one of the
:mod:`automodcord.automod.automod_exceptions` platform errors, so the
dispatcher never has to know about ``discord.HTTPException`` subclasses.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Sequence

import discord

from automodcord.automod.automod_exceptions import NotFound, PermissionDenied, TransientPlatformError
from automodcord.datatypes.discord_datatypes import RoleID, UserID
from automodcord.util.logger import get_logger

logger = get_logger("platform_actions")

# Discord refuses bulk deletes of more than this many messages per call.
BULK_DELETE_LIMIT = 100


@asynccontextmanager
async def platform_call(operation: str):
    """Translate discord errors raised inside the block into automod platform errors."""
    try:
        yield
    except discord.Forbidden as exc:
        raise PermissionDenied(operation, str(exc)) from exc
    except discord.NotFound as exc:
        raise NotFound(operation, str(exc)) from exc
    except discord.HTTPException as exc:
        raise TransientPlatformError(operation, str(exc)) from exc


def _outranks(guild: discord.Guild, member: discord.Member) -> bool:
    me = guild.me
    if me is None or member.id == guild.owner_id:
        return False
    return me.top_role.position > member.top_role.position


class PlatformActions:
    """Capability-checked Discord moderation operations."""

    def can_kick(self, member: discord.Member) -> bool:
        guild = member.guild
        me = guild.me
        return bool(me and me.guild_permissions.kick_members and _outranks(guild, member))

    def can_ban(self, member: discord.Member) -> bool:
        guild = member.guild
        me = guild.me
        return bool(me and me.guild_permissions.ban_members and _outranks(guild, member))

    async def kick(self, member: discord.Member, reason: str) -> None:
        if not self.can_kick(member):
            raise PermissionDenied("kick", f"cannot kick {member.id}")
        async with platform_call("kick"):
            await member.kick(reason=reason)

    async def ban(self, member: discord.Member, reason: str, delete_message_seconds: int) -> None:
        if not self.can_ban(member):
            raise PermissionDenied("ban", f"cannot ban {member.id}")
        async with platform_call("ban"):
            await member.guild.ban(member, reason=reason, delete_message_seconds=delete_message_seconds)

    async def unban(self, guild: discord.Guild, user_id: UserID, reason: str = "") -> None:
        async with platform_call("unban"):
            await guild.unban(discord.Object(id=int(user_id)), reason=reason or None)

    async def add_role(self, member: discord.Member, role_id: RoleID, reason: str) -> None:
        role = member.guild.get_role(int(role_id))
        if role is None:
            raise NotFound("add_role", f"role {role_id} does not exist in guild {member.guild.id}")
        async with platform_call("add_role"):
            await member.add_roles(role, reason=reason)

    async def delete_message(self, message: discord.Message) -> None:
        async with platform_call("delete_message"):
            await message.delete()

    async def bulk_delete_messages(self, messages: Sequence[discord.Message]) -> None:
        """Delete ``messages``, batching per channel. A single message uses a plain delete."""
        by_channel: Dict[int, List[discord.Message]] = defaultdict(list)
        for message in messages:
            by_channel[message.channel.id].append(message)

        for batch in by_channel.values():
            channel = batch[0].channel
            for start in range(0, len(batch), BULK_DELETE_LIMIT):
                chunk = batch[start:start + BULK_DELETE_LIMIT]
                if len(chunk) == 1:
                    await self.delete_message(chunk[0])
                    continue
                async with platform_call("bulk_delete_messages"):
                    await channel.delete_messages(chunk)

    def get_channel_permission_overwrite(
        self, channel: discord.abc.GuildChannel, subject: discord.Member | discord.Role
    ) -> Optional[discord.PermissionOverwrite]:
        """Return a copy of the subject's explicit overwrite, or ``None`` if it has none."""
        overwrite = channel.overwrites_for(subject)
        if overwrite.is_empty():
            return None
        return discord.PermissionOverwrite.from_pair(*overwrite.pair())

    async def set_channel_permission_overwrite(
        self,
        channel: discord.abc.GuildChannel,
        subject: discord.Member | discord.Role,
        overwrite: Optional[discord.PermissionOverwrite],
        reason: str,
    ) -> None:
        """Replace the subject's overwrite; ``None`` removes it entirely."""
        async with platform_call("set_channel_permission_overwrite"):
            await channel.set_permissions(subject, overwrite=overwrite, reason=reason)

    async def send_message(self, channel: discord.abc.Messageable, content: str) -> discord.Message:
        async with platform_call("send_message"):
            return await channel.send(
                content, allowed_mentions=discord.AllowedMentions(everyone=False, roles=True, users=True)
            )
