"""
Automod cog: the ``/automod`` slash command group.

Commands are thin wrappers around the rule registry, the per-guild automod
settings and the silence counters owned by the engine. Every response is
ephemeral and every command requires Manage Messages.

Quick usage example
    /automod add kind:blacklist punishment:roleban limit:3 timeout:15 params:"some words" nya
    /automod view
    /automod delete id:3
"""

import shlex
from typing import List, Optional

import discord
from discord import Option
from discord.ext import commands

from automodcord.automod.automod_engine import AutomodEngine
from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rules import RULE_DOCS
from automodcord.datatypes.automod_datatypes import PunishmentType, RuleKind
from automodcord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from automodcord.util.logger import get_logger

logger = get_logger("automod_cog")

PUNISHMENT_HELP = ", ".join(
    "`whisper:<message>`" if p is PunishmentType.WHISPER else f"`{p.value}`" for p in PunishmentType
)

HELP_TEXT = (
    "**Automod**\n"
    "> `/automod view` lists this server's rules in evaluation order\n"
    "> `/automod add <kind> <punishment> <limit> <timeout> [params]` creates a rule: "
    "it fires once `limit` strikes happen, each strike lasting `timeout` seconds\n"
    "> `/automod delete <id>` removes a rule\n"
    "> `/automod rules` lists the rule kinds and their parameters\n"
    f"> `<punishment>` must be one of {PUNISHMENT_HELP}\n"
    "> Parameters are space separated, quote them to keep spaces: `\"some words\" nya`"
)


def split_parameters(raw: Optional[str]) -> List[str]:
    """Shell-style split of the params option; raises ConfigurationError on unbalanced quotes."""
    if not raw:
        return []
    try:
        return shlex.split(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Could not parse parameters: {exc}") from None


class AutomodCommandsCog(commands.Cog):
    """Slash commands for viewing and editing automod rules and settings."""

    automod = discord.SlashCommandGroup(
        "automod",
        "Automatic moderation rules",
        default_member_permissions=discord.Permissions(manage_messages=True),
    )

    def __init__(self, discord_bot_instance, engine: AutomodEngine):
        self.discord_bot_instance = discord_bot_instance
        self.engine = engine
        self.registry = engine.registry
        self.config_manager = engine.config_manager
        self.silent_channels = engine.silent_channels
        logger.info("[AUTOMOD COG] Automod cog loaded")

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        return True

    @automod.command(name="help", description="Explain how automod rules work.")
    async def automod_help(self, ctx: discord.ApplicationContext):
        await ctx.respond(HELP_TEXT, ephemeral=True)

    @automod.command(name="rules", description="List the available rule kinds.")
    async def rule_kinds(self, ctx: discord.ApplicationContext):
        lines = [f"`{kind.value}`: {RULE_DOCS.get(kind, '')}" for kind in RuleKind]
        await ctx.respond("**Rule kinds**\n" + "\n".join(lines), ephemeral=True)

    @automod.command(name="view", description="Show this server's automod rules.")
    async def view(self, ctx: discord.ApplicationContext):
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        definitions = self.registry.definitions(guild_id)
        unloaded = self.registry.unloaded(guild_id)
        if not definitions and not unloaded:
            await ctx.respond("There are no automod rules in this server.", ephemeral=True)
            return

        lines = [d.summary() for d in definitions]
        lines += [f"{d.summary()} (failed to load, delete and re-add it)" for d in unloaded]
        listing = "\n".join(lines)
        await ctx.respond(f"**Automod rules**\n```md\n{listing}\n```", ephemeral=True)

    @automod.command(name="add", description="Create an automod rule.")
    async def add(
        self,
        ctx: discord.ApplicationContext,
        kind: Option(str, "Rule kind", choices=[k.value for k in RuleKind]),
        punishment: Option(str, "none, delete, roleban, kick, ban, softban, log or whisper:<message>"),
        limit: Option(int, "Strikes needed before the punishment is applied", min_value=1),
        timeout: Option(int, "Seconds each strike lasts", min_value=0),
        params: Option(str, "Rule parameters, quote to keep spaces", required=False, default=None),
    ):
        if not await self._ensure_guild_context(ctx):
            return

        try:
            definition = await self.registry.add(
                GuildID(ctx.guild_id), kind, punishment, limit, timeout, split_parameters(params)
            )
        except ConfigurationError as exc:
            await ctx.respond(f"Could not create rule: {exc}", ephemeral=True)
            return

        await ctx.respond(f"Added rule:\n```md\n{definition.summary()}\n```", ephemeral=True)

    @automod.command(name="delete", description="Delete an automod rule by id.")
    async def delete(
        self,
        ctx: discord.ApplicationContext,
        rule_id: Option(int, "Id shown by /automod view", name="id"),
    ):
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        removed = await self.registry.remove(guild_id, rule_id)
        if removed is None and await self.registry.discard_stored(guild_id, rule_id):
            await ctx.respond(f"Deleted unreadable rule {rule_id}.", ephemeral=True)
            return
        if removed is None:
            await ctx.respond(f"There is no rule with id {rule_id}.", ephemeral=True)
            return

        await ctx.respond(f"Deleted rule:\n```md\n{removed.summary()}\n```", ephemeral=True)

    @automod.command(name="silent", description="Show a channel's announcement silence counter.")
    async def silent(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Channel to inspect"),
    ):
        count = self.silent_channels.get(ChannelID(channel.id))
        await ctx.respond(f"Silence count for {channel.mention}: {count}", ephemeral=True)

    @automod.command(name="clearsilent", description="Reset a channel's announcement silence counter.")
    async def clearsilent(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Channel to reset"),
    ):
        self.silent_channels.clear(ChannelID(channel.id))
        await ctx.respond(f"Cleared the silence count for {channel.mention}.", ephemeral=True)

    @automod.command(name="configure", description="Change this server's automod settings.")
    async def configure(
        self,
        ctx: discord.ApplicationContext,
        prefix: Option(str, "Text put before punishment announcements, 'none' to clear", required=False, default=None),
        silence_triggers: Option(
            str, "Substrings that silence announcements for a moment, 'none' to clear", required=False, default=None
        ),
        roleban_role: Option(discord.Role, "Role added by the roleban punishment", required=False, default=None),
        modlog_channel: Option(discord.TextChannel, "Channel for automod log entries", required=False, default=None),
    ):
        if not await self._ensure_guild_context(ctx):
            return

        changes = {}
        try:
            if prefix is not None:
                changes["prepend"] = "" if prefix.strip().lower() == "none" else prefix
            if silence_triggers is not None:
                changes["silence_triggers"] = (
                    [] if silence_triggers.strip().lower() == "none" else split_parameters(silence_triggers)
                )
        except ConfigurationError as exc:
            await ctx.respond(str(exc), ephemeral=True)
            return
        if roleban_role is not None:
            changes["roleban_role_id"] = RoleID(roleban_role.id)
        if modlog_channel is not None:
            changes["modlog_channel_id"] = ChannelID(modlog_channel.id)

        config = self.config_manager.get(GuildID(ctx.guild_id))
        if changes:
            config = await self.config_manager.update(GuildID(ctx.guild_id), **changes)

        triggers = ", ".join(f"`{t}`" for t in config.silence_triggers) or "none"
        await ctx.respond(
            "**Automod settings**\n"
            f"> Prefix: {config.prepend or 'none'}\n"
            f"> Silence triggers: {triggers}\n"
            f"> Roleban role: {f'<@&{config.roleban_role_id}>' if config.roleban_role_id else 'none'}\n"
            f"> Modlog channel: {f'<#{config.modlog_channel_id}>' if config.modlog_channel_id else 'none'}",
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )


def setup(discord_bot_instance, engine: AutomodEngine):
    """Register the AutomodCommandsCog with the bot."""
    discord_bot_instance.add_cog(AutomodCommandsCog(discord_bot_instance, engine))
