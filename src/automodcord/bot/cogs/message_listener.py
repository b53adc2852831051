"""Message listener cog: hands every new guild message to the automod engine."""

import discord
from discord.ext import commands

from automodcord.automod.automod_engine import AutomodEngine
from automodcord.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for feeding message creation events to automod."""

    def __init__(self, discord_bot_instance, engine: AutomodEngine):
        self.discord_bot_instance = discord_bot_instance
        self.engine = engine
        logger.info("[MESSAGE LISTENER] Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        if message.guild is None or message.author.bot:
            return

        try:
            await self.engine.handle_message(message)
        except Exception:
            logger.exception("[MESSAGE LISTENER] Automod failed on message %s", message.id)


def setup(discord_bot_instance, engine: AutomodEngine):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, engine))
