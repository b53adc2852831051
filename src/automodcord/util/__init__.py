"""
Utility helpers for Automodcord.

- **logger.py**: Centralized logging configuration with colored prompt_toolkit
  console output and a rotating per-session log file.
"""
