"""Configuration module for the music catalogue.

Handles configuration from multiple sources with precedence:
CLI arguments > config file > environment variables > defaults
"""

import os
from pathlib import Path
from typing import Any, ClassVar

import yaml
from dotenv import load_dotenv
from loguru import logger

load_dotenv()  # Load .env file from current directory


class Config:
    """Configuration manager for indexing runs."""

    # Default configuration values
    DEFAULTS: ClassVar[dict[str, Any]] = {
        "base_path": "./Music",
        "cache_dir": None,  # Computed from base_path if not provided
        "record_cache_name": "records.json.gz",
        "catalogue_name": "catalogue.json.gz",
        "lock_name": ".index.lock",
        "workers": 1,
        "profile_file": None,
        "playlist_store": None,  # Winamp installation directory
        "extensions": None,  # Defaults to AUDIO_EXTS
    }

    # Audio file extensions we can extract metadata from
    AUDIO_EXTS: ClassVar[set[str]] = {
        ".aac",
        ".aiff",
        ".alac",
        ".ape",
        ".flac",
        ".m4a",
        ".mp3",
        ".mp4",
        ".ogg",
        ".opus",
        ".wav",
        ".wma",
    }

    def __init__(
        self,
        base_path: str | None = None,
        config_file: str | None = None,
        **overrides: Any,
    ) -> None:
        """Initialize configuration.

        Args:
            base_path: Root directory of the music collection
            config_file: Path to YAML config file
            **overrides: Direct configuration overrides (None values are ignored)
        """
        self.config = self.DEFAULTS.copy()

        if config_file:
            self._load_config_file(config_file)

        self._load_env_vars()

        # Apply CLI overrides
        if base_path:
            self.config["base_path"] = base_path
        self.config.update({key: value for key, value in overrides.items() if value is not None})

        self.base_path = Path(str(self.config["base_path"])).resolve()

    def _load_config_file(self, config_file: str) -> None:
        """Load configuration from YAML file."""
        try:
            with Path(config_file).open() as f:
                file_config: dict[str, Any] = yaml.safe_load(f) or {}
                self.config.update(file_config)
        except FileNotFoundError:
            logger.warning(f"Config file '{config_file}' not found, using defaults")
        except yaml.YAMLError as e:
            logger.warning(f"Error parsing config file '{config_file}': {e}")

    def _load_env_vars(self) -> None:
        """Load configuration from environment variables."""
        env_mapping = {
            "MUSIC_BASE_PATH": "base_path",
            "MUSIC_CATALOGUE_CACHE_DIR": "cache_dir",
            "MUSIC_CATALOGUE_WORKERS": "workers",
            "MUSIC_CATALOGUE_PROFILE": "profile_file",
            "WINAMP_PATH": "playlist_store",
        }

        for env_var, config_key in env_mapping.items():
            value = os.getenv(env_var)
            if value:
                self.config[config_key] = value

    @property
    def cache_dir(self) -> Path:
        """Directory holding the record cache, catalogue snapshot and run lock."""
        cache_dir = self.config.get("cache_dir")
        if cache_dir:
            return Path(str(cache_dir)).resolve()
        return self.base_path / ".catalogue"

    @property
    def record_cache_path(self) -> Path:
        """Path to the compressed record cache."""
        return self.cache_dir / str(self.config["record_cache_name"])

    @property
    def catalogue_path(self) -> Path:
        """Path to the compressed catalogue snapshot."""
        return self.cache_dir / str(self.config["catalogue_name"])

    @property
    def lock_path(self) -> Path:
        """Path to the run lock file."""
        return self.cache_dir / str(self.config["lock_name"])

    @property
    def workers(self) -> int:
        """Number of files extracted concurrently (at least 1)."""
        try:
            return max(1, int(str(self.config["workers"])))
        except ValueError:
            return 1

    @property
    def profile_file(self) -> Path | None:
        """Profile YAML declaring categories and playlists."""
        profile = self.config.get("profile_file")
        return Path(str(profile)) if profile else None

    @property
    def playlist_store(self) -> Path | None:
        """Winamp installation directory holding the playlist library."""
        store = self.config.get("playlist_store")
        return Path(str(store)) if store else None

    @property
    def extensions(self) -> set[str]:
        """Recognized audio extensions, lowercase with leading dot."""
        extensions = self.config.get("extensions")
        if not extensions:
            return set(self.AUDIO_EXTS)
        return {f".{str(ext).lower().lstrip('.')}" for ext in extensions}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key."""
        return self.config.get(key, default)

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(base_path={self.base_path}, cache_dir={self.cache_dir})"


def load_config(
    base_path: str | None = None,
    config_file: str | None = None,
    **kwargs: Any,
) -> Config:
    """Load configuration with auto-detection of config file.

    Args:
        base_path: Root directory of the music collection
        config_file: Explicit path to config file (optional)
        **kwargs: Additional configuration overrides

    Returns:
        Config instance
    """
    if not config_file:
        for candidate in [".music_catalogue.yaml", ".music_catalogue.yml", "music_catalogue.yaml"]:
            if Path(candidate).exists():
                config_file = candidate
                break

    return Config(base_path=base_path, config_file=config_file, **kwargs)
