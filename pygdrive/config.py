"""Configuration handling for pygdrive.

Values are read from environment variables first and then from the config
file ``~/.config/pygdrive/config`` (simple ``KEY=VALUE`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"
DEFAULT_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
DEFAULT_CACHE_FILE_NAME = "file_cache.json"

ACCESS_TOKEN_KEY = "PYGDRIVE_ACCESS_TOKEN"
API_URL_KEY = "PYGDRIVE_API_URL"
UPLOAD_URL_KEY = "PYGDRIVE_UPLOAD_URL"
CONFIG_DIR_KEY = "PYGDRIVE_CONFIG_DIR"


class Config:
    """Configuration manager for pygdrive."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config and cache files.
                Defaults to $PYGDRIVE_CONFIG_DIR or ~/.config/pygdrive
        """
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_KEY)
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pygdrive"
            )
        self.config_dir = config_dir
        self._file_values: Optional[dict[str, str]] = None

    def get_config_path(self) -> Path:
        """Path of the KEY=VALUE config file."""
        return self.config_dir / "config"

    def get_cache_path(self) -> Path:
        """Path of the fingerprint cache used by sync."""
        return self.config_dir / DEFAULT_CACHE_FILE_NAME

    def _load_file(self) -> dict[str, str]:
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        path = self.get_config_path()
        if path.exists():
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip().strip('"').strip("'")
            logger.debug(f"Loaded {len(values)} config value(s) from {path}")
        self._file_values = values
        return values

    def _get(self, key: str) -> Optional[str]:
        return os.environ.get(key) or self._load_file().get(key)

    @property
    def access_token(self) -> Optional[str]:
        """OAuth access token for the Drive API."""
        return self._get(ACCESS_TOKEN_KEY)

    @property
    def api_url(self) -> str:
        """Base URL for metadata requests."""
        return self._get(API_URL_KEY) or DEFAULT_API_URL

    @property
    def upload_url(self) -> str:
        """Base URL for content uploads."""
        return self._get(UPLOAD_URL_KEY) or DEFAULT_UPLOAD_URL

    def save_access_token(self, token: str) -> None:
        """Store the access token in the config file.

        Args:
            token: OAuth access token
        """
        values = dict(self._load_file())
        values[ACCESS_TOKEN_KEY] = token

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            for key, value in sorted(values.items()):
                f.write(f"{key}={value}\n")
        path.chmod(0o600)
        self._file_values = values


config = Config()
