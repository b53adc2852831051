"""
Configuration for Automodcord.

- **app_configuration.py**: YAML process configuration (``config/app_config.yml``)
- **automod_settings.py**: Typed view of its ``automod`` section
- **automod_config.py**: Per-guild automod settings stored in SQLite
"""
