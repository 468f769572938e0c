"""Simple YAML configuration loader for voicegate."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "wake_word": {
        "phrases": ["小瞳小瞳"],
        "language": "zh-CN",
        "restart_delay_seconds": 0.3,
    },
    "audio": {
        "sample_rate": 16000,
        "channels": 1,
        "frame_size": 1024,
        "device_index": None,
    },
    "silence": {
        "threshold": 20.0,
        "timeout_seconds": 2.0,
        # One display refresh at 60 Hz
        "tick_seconds": 0.016,
    },
    "transcription": {
        "base_url": "https://api.siliconflow.cn/v1",
        "path": "/audio/transcriptions",
        "model": "FunAudioLLM/SenseVoiceSmall",
        "api_key_env": "SILICONFLOW_API_KEY",
        "timeout_seconds": 30.0,
    },
    "google_cloud": {
        "credentials_path": None,
    },
    "pubsub": {
        "topic_root": "voicegate",
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/voicegate.log",
        "console_output": True,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class VoiceGateConfig:
    """voicegate configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are used.
        """
        self.config_file: Optional[Path] = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> "VoiceGateConfig":
        """Build a configuration from defaults plus in-memory overrides."""
        config = cls()
        config.config = _deep_merge(config.config, overrides)
        return config

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not loaded:
            raise ValueError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping")

        config = _deep_merge(DEFAULT_CONFIG, loaded)
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        creds_path = config['google_cloud'].get('credentials_path')
        if creds_path and not os.path.isabs(creds_path):
            config['google_cloud']['credentials_path'] = str(config_dir / creds_path)

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'silence.timeout_seconds').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'wake_word.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_wake_phrases(self) -> list:
        """Get the configured wake phrases; at least one is required."""
        phrases = self.get('wake_word.phrases') or []
        if isinstance(phrases, str):
            phrases = [phrases]
        phrases = [p.strip() for p in phrases if p and p.strip()]
        if not phrases:
            raise ValueError("At least one wake phrase must be configured (wake_word.phrases)")
        return phrases

    def get_api_key(self) -> Optional[str]:
        """Read the transcription API key from the configured environment variable."""
        env_name = self.get('transcription.api_key_env', 'SILICONFLOW_API_KEY')
        return os.environ.get(env_name)

    def get_google_credentials_path(self) -> Optional[str]:
        """Get Google credentials path, or None to use application default credentials."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            return None

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())
