"""
load the config from config.yaml and environment variables (.env is loaded by the CLI)
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    ENV_MAPPINGS = {
        'CRXFETCH_CHROME_VERSION': ('fetcher', 'chrome_version'),
        'CRXFETCH_UPDATE_URL': ('fetcher', 'update_url'),
        'CRXFETCH_MAX_REDIRECTS': ('fetcher', 'max_redirects'),
        'CRXFETCH_TIMEOUT': ('fetcher', 'timeout'),
        'CRXFETCH_CHUNK_SIZE': ('fetcher', 'chunk_size'),
        'CRXFETCH_OUTPUT_DIR': ('output', 'directory'),
        'CRXFETCH_CONCURRENCY': ('worker', 'concurrency'),
        'LOG_LEVEL': ('logging', 'level'),
        'LOG_FORMAT': ('logging', 'format'),
    }

    def __init__(self, config_path: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses the config.yaml
                        shipped next to this module.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by walking nested keys.

        Args:
            *keys: Configuration keys (e.g., 'fetcher', 'timeout')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={})

    @property
    def output(self) -> Dict[str, Any]:
        """Get output directory configuration."""
        return self.get('output', default={})

    @property
    def worker(self) -> Dict[str, Any]:
        return self.get('worker', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

