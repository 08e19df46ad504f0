"""Configuration file management.

Config is stored in TOML format at:
- macOS/Linux: ~/.config/rasterclass/config.toml
- Windows: %APPDATA%\\rasterclass\\config.toml

Usage:
    config = load_config()
    class_count = get_value(config, "general.class_count", 10)
"""

import copy
import platform
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

import tomli_w

from ..constants import (
    APP_NAME,
    DEFAULT_BACKEND,
    DEFAULT_CLASS_COUNT,
    DEFAULT_DEVICE_INDEX,
    DEFAULT_SEED,
    TAGGED_IMAGE_EXTENSIONS,
    ErrorPolicy,
)
from ..exceptions import ConfigError


def get_config_dir() -> Path:
    """Get platform-appropriate config directory."""
    if platform.system() == "Windows":
        base = Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def get_config_path() -> Path:
    """Get path to config file."""
    return get_config_dir() / "config.toml"


DEFAULT_CONFIG = {
    "general": {
        "class_count": DEFAULT_CLASS_COUNT,
        "on_error": ErrorPolicy.ABORT.value,
    },
    "input": {
        "extensions": list(TAGGED_IMAGE_EXTENSIONS),
        "case_sensitive": True,
    },
    "device": {
        "index": DEFAULT_DEVICE_INDEX,
        "require_accelerator": True,
    },
    "backend": {
        "name": DEFAULT_BACKEND,
        "model_path": "",
        "seed": DEFAULT_SEED,
        "softmax": False,
    },
}


def load_config(path: Path | None = None) -> dict:
    """Load configuration, layered over the defaults.

    A missing file is not an error: the defaults are returned and nothing
    is written.

    Args:
        path: Config file (default: get_config_path())

    Returns:
        Dict with configuration values

    Raises:
        ConfigError: If config file is malformed or has invalid values
    """
    config_path = path or get_config_path()
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path.exists():
        return config

    try:
        with open(config_path, "rb") as f:
            user_config = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}")

    _merge(config, user_config)
    validate_config(config)
    return config


def save_config(config: dict, path: Path | None = None) -> Path:
    """Save configuration to file.

    Args:
        config: Dict with configuration values
        path: Destination (default: get_config_path())

    Returns:
        Path written
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    return config_path


def validate_config(config: dict) -> None:
    """Check value types and ranges.

    Raises:
        ConfigError: On the first invalid value
    """
    class_count = get_value(config, "general.class_count")
    if not isinstance(class_count, int) or isinstance(class_count, bool) or class_count < 1:
        raise ConfigError(f"general.class_count must be a positive integer, got {class_count!r}")

    on_error = get_value(config, "general.on_error")
    if on_error not in {p.value for p in ErrorPolicy}:
        raise ConfigError(
            f"general.on_error must be one of {', '.join(p.value for p in ErrorPolicy)}, "
            f"got {on_error!r}"
        )

    extensions = get_value(config, "input.extensions")
    if not isinstance(extensions, list) or not all(
        isinstance(e, str) and e.startswith(".") for e in extensions
    ):
        raise ConfigError("input.extensions must be a list of suffixes like '.tif'")

    index = get_value(config, "device.index")
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        raise ConfigError(f"device.index must be a non-negative integer, got {index!r}")

    if not isinstance(get_value(config, "backend.name"), str):
        raise ConfigError("backend.name must be a string")


def get_value(config: dict, key: str, default: Any = None) -> Any:
    """Get a nested config value using dot notation.

    Example:
        >>> config = {"backend": {"seed": 7}}
        >>> get_value(config, "backend.seed")
        7
    """
    current = config

    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default

    return current


def set_value(config: dict, key: str, value: Any) -> None:
    """Set a nested config value using dot notation.

    Example:
        >>> config = {}
        >>> set_value(config, "backend.name", "onnx")
        >>> config
        {'backend': {'name': 'onnx'}}
    """
    parts = key.split(".")
    current = config

    for part in parts[:-1]:
        if part not in current:
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value


def _merge(base: dict, override: dict) -> None:
    """Recursively merge ``override`` into ``base`` in place."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
