"""
Centralized configuration management for the HiAnime scraper.
Combines settings from .env, config.json, and environment variables.
"""

import os
import json
import copy
import logging
from typing import Dict, Any, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ConfigManager:
    """Centralized configuration manager for the scraper, API and CLI."""

    def __init__(self, config_file: str = "config.json", env_file: str = ".env"):
        """
        Initialize the configuration manager.

        Args:
            config_file (str): Path to the config.json file
            env_file (str): Path to the .env file
        """
        # Load environment variables
        load_dotenv(env_file)

        self.config = {
            # Default values
            "scraper": {
                "base_url": "https://hianime.to",
                "user_agent": DEFAULT_USER_AGENT,
                "timeout": 30.0,
                "rate_limit": 0.5,
                "max_retries": 3
            },
            "keys": {
                "megacloud_url": "https://raw.githubusercontent.com/itzzzme/megacloud-keys/refs/heads/main/key.txt",
                "registry_url": "https://raw.githubusercontent.com/yogesh-hacker/MegacloudKeys/refs/heads/main/keys.json",
                "registry_provider": "mega"
            },
            "resolver": {
                "timeout": 60.0,
                "megaplay_host": "megaplay.buzz",
                "vidwish_host": "vidwish.live",
                "megacloud_blog_url": "https://megacloud.blog/embed-2/v3/e-1/getSources"
            },
            "server": {
                "host": "0.0.0.0",
                "port": 3030,
                "debug": False,
                "enable_cors": True
            },
            "output": {
                "format": "json",
                "file": "",
                "verbose": False
            },
            "logging": {
                "level": "INFO"
            }
        }

        # Load config from file
        self._load_config_file(config_file)

        # Override with environment variables
        self._load_env_variables()

        self._log_config()

    def _load_config_file(self, config_file: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_file (str): Path to the config file
        """
        if not os.path.exists(config_file):
            logger.debug(f"Config file {config_file} not found, using defaults")
            return
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                file_config = json.load(f)

            self._update_nested_dict(self.config, file_config)
            logger.info(f"Loaded configuration from {config_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config file: {str(e)}")

    def _env_float(self, name: str, key: str) -> None:
        raw = os.getenv(name)
        if not raw:
            return
        try:
            self.set(key, float(raw.rstrip('s')))
        except ValueError:
            logger.warning(f"Invalid {name} value, using default")

    def _env_int(self, name: str, key: str) -> None:
        raw = os.getenv(name)
        if not raw:
            return
        try:
            self.set(key, int(raw))
        except ValueError:
            logger.warning(f"Invalid {name} value, using default")

    def _env_bool(self, name: str, key: str) -> None:
        raw = os.getenv(name)
        if raw:
            self.set(key, raw.lower() in ('true', '1', 't', 'yes'))

    def _load_env_variables(self) -> None:
        """Load configuration from environment variables."""
        # Scraper settings
        if os.getenv('BASE_URL'):
            self.config['scraper']['base_url'] = os.getenv('BASE_URL').rstrip('/')
        if os.getenv('USER_AGENT'):
            self.config['scraper']['user_agent'] = os.getenv('USER_AGENT')
        self._env_float('TIMEOUT', 'scraper.timeout')
        self._env_float('RATE_LIMIT', 'scraper.rate_limit')
        self._env_int('MAX_RETRIES', 'scraper.max_retries')

        # Key sources
        if os.getenv('KEY_URL'):
            self.config['keys']['megacloud_url'] = os.getenv('KEY_URL')
        if os.getenv('KEY_REGISTRY_URL'):
            self.config['keys']['registry_url'] = os.getenv('KEY_REGISTRY_URL')
        self._env_float('RESOLVE_TIMEOUT', 'resolver.timeout')

        # Server settings
        if os.getenv('HOST'):
            self.config['server']['host'] = os.getenv('HOST')
        self._env_int('PORT', 'server.port')
        self._env_bool('FLASK_DEBUG', 'server.debug')
        self._env_bool('ENABLE_CORS', 'server.enable_cors')

        # Output / logging
        if os.getenv('OUTPUT_FORMAT'):
            self.config['output']['format'] = os.getenv('OUTPUT_FORMAT').lower()
        self._env_bool('VERBOSE', 'output.verbose')
        if os.getenv('LOG_LEVEL'):
            self.config['logging']['level'] = os.getenv('LOG_LEVEL').upper()

    def _update_nested_dict(self, d: Dict, u: Dict) -> Dict:
        """
        Update a nested dictionary with another dictionary.

        Args:
            d (Dict): Target dictionary
            u (Dict): Source dictionary

        Returns:
            Dict: Updated dictionary
        """
        for k, v in u.items():
            if isinstance(v, dict) and k in d and isinstance(d[k], dict):
                d[k] = self._update_nested_dict(d[k], v)
            else:
                d[k] = v
        return d

    def _log_config(self) -> None:
        """Log the current configuration with the key source URLs masked."""
        safe_config = copy.deepcopy(self.config)
        for name in ('megacloud_url', 'registry_url'):
            if safe_config['keys'].get(name):
                safe_config['keys'][name] = '***'
        logger.debug(f"Current configuration: {json.dumps(safe_config, indent=2)}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key (str): Configuration key (dot notation for nested keys)
            default (Any): Default value if key not found

        Returns:
            Any: Configuration value
        """
        keys = key.split('.')
        value = self.config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key (str): Configuration key (dot notation for nested keys)
            value (Any): Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value


# Singleton instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """
    Get the singleton ConfigManager instance.

    Returns:
        ConfigManager: The configuration manager instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
