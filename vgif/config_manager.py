"""
Configuration Manager for vgif
Handles loading and managing configuration from YAML files and CLI arguments
"""

import os
import copy
import logging
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE = 'vgif.yaml'


class ConfigManager:
    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir
        self.config: Dict[str, Any] = {}
        self.loaded_from: Optional[str] = None
        self._load_config()

    def _load_config(self):
        """Load packaged defaults, then layer an external config dir on top"""
        package_dir = os.path.abspath(os.path.dirname(__file__))
        packaged_path = os.path.join(package_dir, 'config', CONFIG_FILE)

        if os.path.exists(packaged_path):
            self.config = self._read_yaml(packaged_path)
            self.loaded_from = packaged_path
            logger.debug(f"Loaded packaged default config from {packaged_path}")
        else:
            logger.warning(f"Packaged default config missing: {packaged_path}")

        if not self.config_dir:
            return

        config_path = os.path.join(self.config_dir, CONFIG_FILE)
        if os.path.exists(config_path):
            self._merge(self.config, self._read_yaml(config_path))
            self.loaded_from = config_path
            logger.debug(f"Loaded config from {config_path}")
        else:
            logger.warning(f"Config file not found in '{self.config_dir}', using packaged defaults")

    @staticmethod
    def _read_yaml(path: str) -> Dict[str, Any]:
        with open(path, 'r', encoding='utf-8') as file:
            return yaml.safe_load(file) or {}

    @classmethod
    def _merge(cls, base: Dict[str, Any], override: Dict[str, Any]):
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                cls._merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: get('cache.max_size_mb')
        """
        value = self.config
        try:
            for key in key_path.split('.'):
                value = value[key]
            return value
        except (KeyError, TypeError):
            logger.debug(f"Configuration key '{key_path}' not found, using default: {default}")
            return default

    def get_logging_config(self) -> Optional[Dict[str, Any]]:
        section = self.get('logging')
        return copy.deepcopy(section) if section else None

    def update_from_args(self, args_dict: Dict[str, Any]):
        """Update configuration with command line arguments"""
        applied = 0
        for key, value in args_dict.items():
            if value is None:
                continue
            old_value = self.get(key)
            self._set_nested_value(key, value)
            applied += 1
            logger.debug(f"Configuration override applied: {key} = {value} (was: {old_value})")

        if applied:
            logger.debug(f"Applied {applied} CLI configuration overrides")

    def _set_nested_value(self, key_path: str, value: Any):
        """Set nested configuration value using dot notation"""
        keys = key_path.split('.')
        section = self.config
        for key in keys[:-1]:
            if not isinstance(section.get(key), dict):
                section[key] = {}
            section = section[key]
        section[keys[-1]] = value
