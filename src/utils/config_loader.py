"""Configuration loading utilities."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

# configs/default.yaml at the repository root
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "default.yaml"


class ConfigLoader:
    """Load and manage YAML configurations."""

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Default directory for config files.
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_PATH.parent
        self._cache: Dict[str, Dict] = {}

    def load(
        self,
        config_path: Union[str, Path],
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Relative paths that do not exist as given are looked up in
        ``config_dir``.

        Args:
            config_path: Path to config file.
            use_cache: Whether to use cached config.

        Returns:
            Configuration dictionary.
        """
        config_path = Path(config_path)

        if not config_path.is_absolute() and not config_path.exists():
            config_path = self.config_dir / config_path

        cache_key = str(config_path)

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key].copy()

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"Config root must be a mapping: {config_path}")

        config = self._process_includes(config, config_path.parent)

        if use_cache:
            self._cache[cache_key] = config

        return config.copy()

    def _process_includes(
        self,
        config: Dict,
        base_dir: Path,
    ) -> Dict:
        """Resolve ``"!include <file>"`` string values relative to ``base_dir``."""
        result = {}

        for key, value in config.items():
            if isinstance(value, str) and value.startswith("!include "):
                include_path = base_dir / value[9:]
                with open(include_path, "r") as f:
                    result[key] = yaml.safe_load(f)
            elif isinstance(value, dict):
                result[key] = self._process_includes(value, base_dir)
            else:
                result[key] = value

        return result

    def merge(
        self,
        base: Dict[str, Any],
        override: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Deep merge two configurations.

        Args:
            base: Base configuration.
            override: Override configuration.

        Returns:
            Merged configuration.
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def clear_cache(self) -> None:
        """Clear configuration cache."""
        self._cache.clear()


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Load a configuration file on top of the packaged defaults.

    Args:
        config_path: Path to config file. ``None`` loads only the defaults.
        overrides: Optional overrides to apply last.

    Returns:
        Configuration dictionary.
    """
    loader = ConfigLoader()
    config = loader.load(DEFAULT_CONFIG_PATH)

    if config_path is not None:
        config = loader.merge(config, loader.load(config_path))

    if overrides:
        config = loader.merge(config, overrides)

    return config


def get_nested(
    config: Dict[str, Any],
    key: str,
    default: Any = None,
) -> Any:
    """
    Get nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key (e.g., 'lidar.shrink_factor').
        default: Default value if key not found.

    Returns:
        Config value or default.
    """
    value = config

    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default

    return value
