"""Configuration loading for the Unhedged tools."""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


class ConfigLoader:
    """Load configuration from YAML files with environment variable substitution.

    Files are layered in order: the packaged ``settings.yaml``, an optional
    ``settings.local.yaml`` beside it, then an optional user-supplied file.
    Later layers are deep-merged over earlier ones.
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        override_file: Path | None = None,
    ) -> None:
        """Initialize the config loader.

        Load environment variables from a ``.env`` file (if present) and
        then read YAML configuration from the given directory.

        Args:
            config_dir: Directory containing config files. Defaults to
                ``src/unhedged_tools/config``.
            override_file: Extra YAML file merged last, e.g. from ``--config``.

        Raises:
            ConfigError: If ``override_file`` does not exist or is not a mapping.

        """
        load_dotenv()
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        self.override_file = Path(override_file) if override_file is not None else None
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and merge every configuration layer."""
        settings_file = self.config_dir / "settings.yaml"
        if settings_file.exists():
            self._config = self._read_yaml(settings_file)

        local_settings = self.config_dir / "settings.local.yaml"
        if local_settings.exists():
            self._deep_merge(self._config, self._read_yaml(local_settings))

        if self.override_file is not None:
            if not self.override_file.exists():
                msg = f"Config file not found: {self.override_file}"
                raise ConfigError(msg)
            self._deep_merge(self._config, self._read_yaml(self.override_file))

        self._config = self._substitute_env_vars(self._config)

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        """Read a YAML mapping from ``path``.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.

        """
        try:
            with path.open() as f:
                data: Any = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            msg = f"Invalid YAML in {path}: {exc}"
            raise ConfigError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Config file {path} must contain a mapping, got {type(data).__name__}"
            raise ConfigError(msg)
        return cast("dict[str, Any]", data)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override dict into base dict.

        Args:
            base: Base dictionary to merge into (modified in place).
            override: Dictionary with values to override.

        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], cast("dict[str, Any]", value))
            else:
                base[key] = value

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in config.

        Supports ``${VAR_NAME:default_value}`` and ``${VAR_NAME}``, either as
        the whole value or embedded in a longer string.

        Args:
            config: Configuration value (dict, list, or str).

        Returns:
            Configuration with environment variables substituted.

        Raises:
            ConfigError: If a referenced variable is unset and has no default.

        """
        if isinstance(config, dict):
            return {
                k: self._substitute_env_vars(v)
                for k, v in config.items()  # pyright: ignore[reportUnknownVariableType]
            }
        if isinstance(config, list):
            return [
                self._substitute_env_vars(item)
                for item in config  # pyright: ignore[reportUnknownVariableType]
            ]
        if isinstance(config, str) and "${" in config:
            return _ENV_REFERENCE.sub(_resolve_reference, config)
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key.

        Args:
            key: Configuration key in dot notation (e.g., ``betting.window_minutes``).
            default: Default value if key not found.

        Returns:
            Configuration value.

        """
        keys = key.split(".")
        current: Any = self._config
        for k in keys:
            if isinstance(current, dict):
                current = cast("dict[str, Any]", current).get(k)
                if current is None:
                    return default
            else:
                return default
        return current  # pyright: ignore[reportReturnType]

    def section(self, key: str) -> dict[str, Any]:
        """Return the mapping stored under ``key`` (empty when absent).

        Raises:
            ConfigError: If the value under ``key`` is not a mapping.

        """
        result: Any = self.get(key, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{key} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)


def _resolve_reference(match: re.Match[str]) -> str:
    """Return the environment value for one ``${VAR:default}`` reference."""
    var_name, default = match.group(1), match.group(2)
    value = os.getenv(var_name, default)
    if value is None:
        msg = f"Required environment variable ${{{var_name}}} is not set and has no default"
        raise ConfigError(msg)
    return value
