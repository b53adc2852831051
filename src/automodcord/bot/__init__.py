"""Discord integration: cogs that expose the automod engine to the bot."""
