from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from automodcord.configuration.automod_settings import AutomodSettings
from automodcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    Caches the contents of ``./config/app_config.yml`` and resolves the
    automod section through :class:`AutomodSettings`. Reads take a shared
    fcntl lock so a concurrent writer never hands us half a file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] %s does not contain a mapping, ignoring it.", self.config_path)
            return {}
        return data

    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache.

        Returns the mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    @property
    def automod(self) -> AutomodSettings:
        """The ``automod`` section wrapped in :class:`AutomodSettings`."""
        settings = self._data.get("automod", {})
        if not isinstance(settings, dict):
            settings = {}
        return AutomodSettings(settings)


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
