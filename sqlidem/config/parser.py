"""Configuration parser for sqlidem."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from sqlidem.config.models import EnvironmentSettings, SQLIdemConfig
from sqlidem.exceptions import ConfigurationError


class ConfigParser:
    """Configuration parser with environment variable interpolation."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    DEFAULT_FILE_NAMES = ("sqlidem.yaml", "sqlidem.yml")

    def __init__(self, env_settings: Optional[EnvironmentSettings] = None) -> None:
        """Initialize the configuration parser."""
        self.env_settings = env_settings or EnvironmentSettings()

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> SQLIdemConfig:
        """Load and validate configuration from a YAML file.

        Args:
            config_path: Path to configuration file. If None, the file named
                by ``SQLIDEM_CONFIG_FILE`` or a ``sqlidem.yaml`` in the
                working directory is used; without either, an empty
                configuration is returned.

        Returns:
            Validated SQLIdemConfig instance.

        Raises:
            ConfigurationError: If configuration is invalid or file not found.
        """
        config_file = self._find_config_file(config_path)
        if config_file is None:
            return SQLIdemConfig()

        try:
            with open(config_file, 'r', encoding='utf-8') as file:
                raw_config = yaml.safe_load(file)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file '{config_file}' not found")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in '{config_file}': {e}")

        if not raw_config:
            return SQLIdemConfig()
        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Configuration file '{config_file}' must contain a mapping")

        processed_config = self._process_env_vars(raw_config)
        if 'include' in processed_config:
            processed_config = self._process_includes(processed_config, config_file)

        try:
            return SQLIdemConfig(**processed_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    def _find_config_file(self, config_path: Optional[Union[str, Path]]) -> Optional[Path]:
        if config_path:
            path = Path(config_path)
            if path.exists():
                return path
            raise ConfigurationError(f"Configuration file '{config_path}' not found")

        if self.env_settings.config_file:
            path = Path(self.env_settings.config_file)
            if path.exists():
                return path
            raise ConfigurationError(f"Configuration file '{path}' not found")

        for name in self.DEFAULT_FILE_NAMES:
            location = Path.cwd() / name
            if location.exists():
                return location
        return None

    def _process_env_vars(self, config: Any) -> Any:
        """Recursively process environment variables in configuration.

        Args:
            config: Configuration data (dict, list, or primitive).

        Returns:
            Configuration with environment variables resolved.
        """
        if isinstance(config, dict):
            return {key: self._process_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._process_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_env_vars(config)
        else:
            return config

    def _substitute_env_vars(self, value: str) -> str:
        """Substitute ``${VAR}`` and ``${VAR:-default}`` in a string.

        Raises:
            ConfigurationError: If a required environment variable is not set.
        """
        def replace_var(match):
            var_expr = match.group(1)

            if ':-' in var_expr:
                var_name, default = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default.strip())

            var_name = var_expr.strip()
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ConfigurationError(f"Required environment variable '{var_name}' is not set")
            return env_value

        return self.ENV_VAR_PATTERN.sub(replace_var, value)

    def _process_includes(self, config: Dict[str, Any], base_path: Union[str, Path]) -> Dict[str, Any]:
        """Merge included files into a configuration; the including file wins."""
        base_dir = Path(base_path).parent
        includes = config.pop('include')
        if not isinstance(includes, list):
            includes = [includes]

        for include_file in includes:
            include_path = base_dir / include_file
            try:
                with open(include_path, 'r', encoding='utf-8') as file:
                    included_config = yaml.safe_load(file)
            except FileNotFoundError:
                raise ConfigurationError(f"Included file '{include_path}' not found")
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in included file '{include_path}': {e}")
            if included_config:
                included_config = self._process_env_vars(included_config)
                config = self._merge_configs(included_config, config)

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value
        return result


def load_config(config_path: Optional[Union[str, Path]] = None) -> SQLIdemConfig:
    """Load configuration with a fresh :class:`ConfigParser`."""
    return ConfigParser().load_config(config_path)
