"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.steadfast/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Dict

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".steadfast"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
DEFAULT_DATA_DIR = Path("data")

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env at or above current directory).")

    # 3. Environment Variables (Highest priority) are handled by os.getenv in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")

def reload_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Forces a fresh load, discarding previously loaded YAML values."""
    global _loaded
    _loaded = False
    load_configuration(config_file=config_file, env_file=env_file)

def _coerce(value: str) -> Any:
    """Converts common scalar spellings found in environment variables."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, '.' replaced by '_')
    3. YAML config (dotted keys walk nested mappings)
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    node: Any = _config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            break
        node = node[part]
    else:
        return node

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_redis_url() -> Optional[str]:
    """Connection string for the networked store and the remote cache tier.

    Absence selects the local-only paths.
    """
    url = get_config('redis_url')
    return str(url) if url else None

def get_data_dir() -> Path:
    """Directory holding the embedded state store and the JSON fallback."""
    return Path(str(get_config('steadfast_data_dir', DEFAULT_DATA_DIR)))

def get_log_level() -> int:
    level_name = str(get_config('log_level', 'INFO')).upper()
    return getattr(logging, level_name, logging.INFO)

def get_log_file() -> Optional[Path]:
    log_file = get_config('log_file')
    return Path(str(log_file)) if log_file else None

def get_rate_limit_overrides() -> Dict[str, Dict[str, Any]]:
    """Per-domain policy overrides from the YAML `rate_limits` mapping."""
    overrides = get_config('rate_limits', {})
    if not isinstance(overrides, dict):
        logger.warning(f"Ignoring 'rate_limits' config: expected a mapping, got {type(overrides).__name__}")
        return {}
    return overrides

def get_cache_ttl_overrides() -> Dict[str, float]:
    """Per-prefix TTL overrides (seconds) from the YAML `cache_ttls` mapping."""
    overrides = get_config('cache_ttls', {})
    if not isinstance(overrides, dict):
        logger.warning(f"Ignoring 'cache_ttls' config: expected a mapping, got {type(overrides).__name__}")
        return {}
    return {str(k): float(v) for k, v in overrides.items()}

def set_config(key: str, value: Any) -> None:
    """Sets a configuration value by key for the lifetime of the process.

    Args:
        key: Configuration key (e.g., 'log_level')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value}, type: {type(value)}")
    _config[key] = value

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

# Load configuration when the module is imported
load_configuration()
