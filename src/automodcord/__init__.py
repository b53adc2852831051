"""
Automodcord - strike based automatic moderation for Discord

Core Components:

- **Rules**: Nine rule kinds (repeats, blacklist, regex, forbidden characters,
  mention spam, invite ads, duplicate embeds, emoji-only, pressure) that turn
  messages into strikes or pressure and fire a verdict at their limit
- **Rule Registry**: Per-guild, id ordered rules backed by SQLite
- **Engine**: Gates messages, serializes evaluation per member and hands
  verdicts to the dispatcher
- **Action Dispatcher**: Deletes, rolebans, kicks, bans, softbans or whispers,
  announces the outcome and writes a moderation log entry

Usage:
    from automodcord.main import main
    main()
"""
