from typing import Any, Dict, Optional


class AutomodSettings:
    """Typed accessors for the ``automod`` section of ``app_config.yml``.

    Every property falls back to its default when the key is missing or
    holds something that cannot be coerced.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    def _number(self, key: str, default: float) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    @property
    def database_path(self) -> str:
        return str(self.data.get("database_path") or "./data/automod.db")

    @property
    def silence_window_seconds(self) -> float:
        return max(0.0, self._number("silence_window_seconds", 3.0))

    @property
    def ban_delete_message_seconds(self) -> int:
        return max(0, int(self._number("ban_delete_message_seconds", 86400)))

    @property
    def bypass_permission(self) -> str:
        return str(self.data.get("bypass_permission") or "manage_messages")

    @property
    def whisper_restore_seconds(self) -> Optional[float]:
        # An explicit null keeps the whisper restriction until a moderator lifts it.
        if "whisper_restore_seconds" in self.data and self.data["whisper_restore_seconds"] is None:
            return None
        return max(0.0, self._number("whisper_restore_seconds", 5.0))

    @property
    def prune_interval_seconds(self) -> float:
        return max(1.0, self._number("prune_interval_seconds", 300.0))
