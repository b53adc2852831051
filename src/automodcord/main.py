"""
Automod Discord Bot
===================

A Discord bot that runs configurable, strike based automod rules against
every guild message and punishes members that cross a rule's limit.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. AUTOMODCORD_HOME environment variable, if set.
    2. If running frozen (e.g. PyInstaller), the executable's directory.
    3. Otherwise the repository root, two levels above this package.
    """
    if env_home := os.getenv("AUTOMODCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass
from typing import Optional

import discord
from dotenv import load_dotenv

from automodcord.automod.action_dispatcher import ActionDispatcher
from automodcord.automod.automod_engine import AutomodEngine
from automodcord.automod.modlog import ModLog
from automodcord.automod.platform_actions import PlatformActions
from automodcord.automod.rule_registry import RuleRegistry
from automodcord.automod.silent_channels import SilentChannels
from automodcord.configuration.app_configuration import app_config
from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.database.database import Database
from automodcord.repositories.automod_config_repo import AutomodConfigRepository
from automodcord.repositories.automod_rules_repo import AutomodRulesRepository
from automodcord.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class AutomodRuntime:
    """Everything created at warm-up and torn down at shutdown."""

    database: Database
    engine: AutomodEngine


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token, exiting if it is missing."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


async def warm_up() -> Optional[AutomodRuntime]:
    """Open the database and load every guild's settings and rules.

    Returns ``None`` if the database could not be opened.
    """
    settings = app_config.automod
    database = Database(Path(settings.database_path).resolve())
    if not await database.initialize():
        return None

    config_manager = GuildAutomodConfigManager(AutomodConfigRepository(database.connection_manager))
    registry = RuleRegistry(AutomodRulesRepository(database.connection_manager))
    try:
        await config_manager.async_init()
        await registry.initialize()
    except Exception as exc:
        logger.critical("Failed to load automod configuration: %s", exc)
        await database.shutdown()
        return None

    silent_channels = SilentChannels(settings.silence_window_seconds)
    dispatcher = ActionDispatcher(
        PlatformActions(),
        ModLog(config_manager),
        config_manager,
        silent_channels,
        ban_delete_message_seconds=settings.ban_delete_message_seconds,
        whisper_restore_seconds=settings.whisper_restore_seconds,
    )
    engine = AutomodEngine(
        registry,
        dispatcher,
        config_manager,
        silent_channels,
        bypass_permission=settings.bypass_permission,
        prune_interval_seconds=settings.prune_interval_seconds,
    )
    return AutomodRuntime(database=database, engine=engine)


def load_cogs(discord_bot_instance: discord.Bot, engine: AutomodEngine) -> None:
    from automodcord.bot.cogs import automod_cmds, message_listener

    message_listener.setup(discord_bot_instance, engine)
    automod_cmds.setup(discord_bot_instance, engine)

    logger.info("All cogs loaded successfully.")


def create_bot(engine: AutomodEngine) -> discord.Bot:
    """Instantiate the Discord bot and register all cogs."""
    bot = discord.Bot(intents=build_intents())
    load_cogs(bot, engine)

    @bot.event
    async def on_ready():
        logger.info("Logged in as %s (%s) in %d guild(s)", bot.user, bot.user.id, len(bot.guilds))

    return bot


async def shutdown_runtime(bot: Optional[discord.Bot], runtime: AutomodRuntime) -> None:
    """Restore pending whispers while the client is still connected, then stop the bot and close the database."""
    try:
        await runtime.engine.shutdown()
    except Exception as exc:
        logger.exception("Error during automod engine shutdown: %s", exc)

    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    await runtime.database.shutdown()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    token = load_environment()

    logger.info("Initializing database and loading automod rules...")
    runtime = await warm_up()
    if runtime is None:
        logger.critical("Automod could not be initialized.")
        return 1

    bot: Optional[discord.Bot] = None
    exit_code = 0
    try:
        bot = create_bot(runtime.engine)
        logger.info("Attempting to connect to Discord…")
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Bot start cancelled; proceeding to shutdown")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting automod bot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
