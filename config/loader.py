"""Configuration loader for gitportal

Loads configuration from multiple sources with the following priority:
1. Prefixed environment variables (GITPORTAL_<NAME>)
2. Plain environment variables (<NAME>)
3. .env file (loaded into the environment, never overriding it)
4. Hardcoded defaults (lowest priority)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "GITPORTAL_"
_TRUE_VALUES = ("true", "1", "yes", "on")


class ConfigLoader:
    """Resolves typed settings from the environment and an optional .env file"""

    def __init__(self, env_path: Optional[str] = None, prefix: str = ENV_PREFIX):
        """Initialize the config loader

        Args:
            env_path: Optional path to .env file.
                     Defaults to $GITPORTAL_ENV_FILE, then '.env' in the current directory.
            prefix: Prefix checked before the bare variable name
        """
        self.prefix = prefix
        default_env = os.getenv(f"{prefix}ENV_FILE", ".env")
        self.env_path = Path(env_path) if env_path else Path(default_env)
        self._load_env_file()

    def _load_env_file(self):
        """Load environment variables from .env file if it exists"""
        if self.env_path.exists():
            load_dotenv(dotenv_path=self.env_path)
            logger.debug(f"Loaded environment variables from {self.env_path}")
        else:
            logger.debug(f".env file not found at {self.env_path}, using environment variables and defaults only")

    def _lookup(self, name: str) -> Optional[str]:
        prefixed = os.getenv(f"{self.prefix}{name}")
        if prefixed is not None:
            return prefixed
        return os.getenv(name)

    def get(self, name: str, default: Any) -> Any:
        """Get a configuration value, coerced to the type of the default

        Args:
            name: Setting name (looked up with and without the prefix)
            default: Default value if not found in environment

        Returns:
            The configuration value from environment or default
        """
        raw = self._lookup(name)
        if raw is None:
            if isinstance(default, str) and default.startswith("~/"):
                return str(Path(default).expanduser())
            return default

        # bool must be checked before int (bool is an int subclass)
        if isinstance(default, bool):
            return raw.strip().lower() in _TRUE_VALUES
        if isinstance(default, int):
            try:
                return int(raw)
            except ValueError:
                logger.warning(f"Failed to parse {name}={raw} as int, using default: {default}")
                return default
        if isinstance(default, float):
            try:
                return float(raw)
            except ValueError:
                logger.warning(f"Failed to parse {name}={raw} as float, using default: {default}")
                return default
        if isinstance(default, str) and raw.startswith("~/"):
            return str(Path(raw).expanduser())
        return raw


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
