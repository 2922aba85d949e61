import json
import logging
import os
import platform
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from settings import CONFIG_FILE

logger = logging.getLogger(__name__)

# Per-provider keys kept in the store
PROVIDER_KEYS = ("token", "client_id", "client_secret", "default_repo", "oauth_enabled", "api_base_url")
SECRET_KEYS = ("token", "client_secret")


class ConfigStore:
    """Key/value configuration store backed by a JSON file with secure permissions

    Layout:
        {"active_provider": "github",
         "providers": {"github": {"token": "...", "client_id": "...", ...}}}

    The OAuth callback writes from the portal server thread while the menu
    reads from the foreground thread, so access is serialized by a lock.
    """

    def __init__(self, config_file: Optional[str] = None):
        self.config_path = Path(config_file if config_file else CONFIG_FILE)
        self._lock = threading.Lock()
        self._ensure_secure_directory()

    def _ensure_secure_directory(self):
        """Create parent directory with secure permissions"""
        parent_dir = self.config_path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            # Set directory permissions to 700 on Unix-like systems
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def _load(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            data = json.loads(self.config_path.read_text())
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config file {self.config_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]):
        self.config_path.write_text(json.dumps(data, indent=2))
        # Tokens and client secrets live here: 600 on Unix-like systems
        if platform.system() != "Windows":
            os.chmod(self.config_path, 0o600)

    def get(self, provider: str, key: str, default: Any = None) -> Any:
        """Read one per-provider value"""
        with self._lock:
            section = self._load().get("providers", {}).get(provider, {})
        return section.get(key, default)

    def set(self, provider: str, key: str, value: Any):
        """Write one per-provider value"""
        if key not in PROVIDER_KEYS:
            raise KeyError(f"Unknown configuration key: {key}")
        with self._lock:
            data = self._load()
            data.setdefault("providers", {}).setdefault(provider, {})[key] = value
            self._save(data)

    def update(self, provider: str, **values: Any):
        """Write several per-provider values at once"""
        unknown = set(values) - set(PROVIDER_KEYS)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        with self._lock:
            data = self._load()
            data.setdefault("providers", {}).setdefault(provider, {}).update(values)
            self._save(data)

    def remove(self, provider: str, key: str):
        with self._lock:
            data = self._load()
            section = data.get("providers", {}).get(provider, {})
            if key in section:
                del section[key]
                self._save(data)

    def get_token(self, provider: str) -> str:
        return self.get(provider, "token", "") or ""

    def save_token(self, provider: str, token: str):
        self.set(provider, "token", token)

    def clear_token(self, provider: str):
        self.remove(provider, "token")

    def get_active_provider(self) -> Optional[str]:
        with self._lock:
            return self._load().get("active_provider")

    def set_active_provider(self, provider: Optional[str]):
        with self._lock:
            data = self._load()
            data["active_provider"] = provider
            self._save(data)

    def get_status(self, provider: str) -> Dict[str, Any]:
        """Get provider configuration without exposing secrets"""
        with self._lock:
            section = dict(self._load().get("providers", {}).get(provider, {}))
        status = {key: section.get(key) for key in PROVIDER_KEYS if key not in SECRET_KEYS}
        status["has_token"] = bool(section.get("token"))
        status["has_client_secret"] = bool(section.get("client_secret"))
        return status

    @property
    def config_file(self) -> Path:
        """Get the configuration file path"""
        return self.config_path
