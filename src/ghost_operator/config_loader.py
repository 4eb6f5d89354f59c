"""
Configuration file loader for Ghost Operator.

Supports loading configuration from YAML and TOML files with environment
variable overrides and a standard search path.

File layout (YAML shown, TOML uses the same tables)::

    remediation:
      validation_delay_seconds: 10
      redundancy_target: 2
    history:
      similar_incident_limit: 5
      memory_search_limit: 5
    storage:
      database_path: ghost_operator.db
    activity:
      log_size: 500
    render:
      api_key: rnd_xxx
      base_url: https://api.render.com/v1
    senso:
      api_key: sns_xxx
      base_url: https://api.senso.ai/v1
      organization_id: org_xxx
    logging:
      level: INFO
      file: ghost_operator.log
"""

import os
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

CONFIG_BASENAME = "ghost-operator"

# (section, key) -> flat OperatorConfig field
FIELD_MAP: Dict[Tuple[str, str], str] = {
    ("remediation", "validation_delay_seconds"): "validation_delay_seconds",
    ("remediation", "redundancy_target"): "redundancy_target",
    ("history", "similar_incident_limit"): "similar_incident_limit",
    ("history", "memory_search_limit"): "memory_search_limit",
    ("storage", "database_path"): "database_path",
    ("activity", "log_size"): "activity_log_size",
    ("render", "api_key"): "render_api_key",
    ("render", "base_url"): "render_base_url",
    ("senso", "api_key"): "senso_api_key",
    ("senso", "base_url"): "senso_base_url",
    ("senso", "organization_id"): "senso_org_id",
    ("logging", "level"): "log_level",
    ("logging", "file"): "log_file",
}

# env suffix -> (section, key, parser)
ENV_MAP: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "VALIDATION_DELAY": ("remediation", "validation_delay_seconds", float),
    "REDUNDANCY_TARGET": ("remediation", "redundancy_target", int),
    "SIMILAR_INCIDENT_LIMIT": ("history", "similar_incident_limit", int),
    "MEMORY_SEARCH_LIMIT": ("history", "memory_search_limit", int),
    "DATABASE_PATH": ("storage", "database_path", str),
    "ACTIVITY_LOG_SIZE": ("activity", "log_size", int),
    "RENDER_API_KEY": ("render", "api_key", str),
    "RENDER_BASE_URL": ("render", "base_url", str),
    "SENSO_API_KEY": ("senso", "api_key", str),
    "SENSO_BASE_URL": ("senso", "base_url", str),
    "SENSO_ORG_ID": ("senso", "organization_id", str),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FILE": ("logging", "file", str),
}


def load_yaml_file(path: Path) -> dict:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If YAML parsing fails
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
            return config if config is not None else {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML config file {path}: {e}")


def load_toml_file(path: Path) -> dict:
    """
    Load configuration from a TOML file.

    Raises:
        ImportError: If tomli is not installed on Python < 3.11
        FileNotFoundError: If file doesn't exist
        ValueError: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib built-in
        import tomllib
    except ImportError:
        try:
            import tomli as tomllib
        except ImportError:
            raise ImportError(
                "tomli is required for TOML config files on Python < 3.11. "
                "Install with: pip install tomli"
            )

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse TOML config file {path}: {e}")


def load_config_file(path: str) -> dict:
    """
    Load configuration from a YAML or TOML file.

    The file format is determined by the file extension (.yaml, .yml, or .toml).

    Raises:
        ValueError: If file extension is not supported or parsing fails
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        return load_yaml_file(file_path)
    elif suffix == '.toml':
        return load_toml_file(file_path)
    else:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Supported formats: .yaml, .yml, .toml"
        )


def find_config_file() -> Optional[Path]:
    """
    Search for a configuration file in standard locations.

    Search order:
    1. ./ghost-operator.yaml
    2. ./ghost-operator.toml
    3. ~/.ghost-operator.yaml
    4. ~/.ghost-operator.toml
    5. /etc/ghost-operator.yaml
    6. /etc/ghost-operator.toml

    Returns:
        Path to the first configuration file found, or None
    """
    search_paths = [
        Path.cwd() / f"{CONFIG_BASENAME}.yaml",
        Path.cwd() / f"{CONFIG_BASENAME}.toml",
        Path.home() / f".{CONFIG_BASENAME}.yaml",
        Path.home() / f".{CONFIG_BASENAME}.toml",
        Path(f"/etc/{CONFIG_BASENAME}.yaml"),
        Path(f"/etc/{CONFIG_BASENAME}.toml"),
    ]

    for path in search_paths:
        if path.exists() and path.is_file():
            logger.info(f"Found configuration file: {path}")
            return path

    logger.debug("No configuration file found in standard locations")
    return None


def get_env_config(prefix: str = "GHOST_OPERATOR_") -> dict:
    """
    Extract nested configuration from environment variables.

    Unparseable values are logged and ignored.
    """
    config: Dict[str, Dict[str, Any]] = {}

    for suffix, (section, key, parse) in ENV_MAP.items():
        raw = os.getenv(f"{prefix}{suffix}")
        if not raw:
            continue
        try:
            value = parse(raw)
        except ValueError:
            logger.warning(f"Invalid {prefix}{suffix}, ignoring")
            continue
        config.setdefault(section, {})[key] = value

    return config


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries, with override values taking precedence.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def flatten_config(config: dict) -> dict:
    """
    Flatten the sectioned configuration to ``OperatorConfig`` fields.

    Unknown sections and keys are ignored with a debug message.
    """
    flat = {}

    for section, values in config.items():
        if not isinstance(values, dict):
            logger.debug(f"Ignoring non-table config entry '{section}'")
            continue
        for key, value in values.items():
            field_name = FIELD_MAP.get((section, key))
            if field_name is None:
                logger.debug(f"Ignoring unknown config key '{section}.{key}'")
                continue
            flat[field_name] = value

    return flat


def merge_config(file_config: dict, env_config: dict) -> dict:
    """
    Merge file-based and environment-based configuration (env wins), flattened.
    """
    merged = deep_merge(file_config, env_config)
    return flatten_config(merged)


def load_config_with_overrides(config_path: Optional[str] = None) -> dict:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Optional explicit path to config file.
                    If None, searches standard locations.

    Returns:
        Dictionary of ``OperatorConfig`` keyword arguments

    Raises:
        FileNotFoundError: If explicit config_path is provided but doesn't exist
        ValueError: If config parsing fails
    """
    file_config = {}

    if config_path:
        file_config = load_config_file(config_path)
        logger.info(f"Loaded configuration from: {config_path}")
    else:
        found_path = find_config_file()
        if found_path:
            file_config = load_config_file(str(found_path))
            logger.info(f"Loaded configuration from: {found_path}")

    env_config = get_env_config()
    if env_config:
        logger.info("Applying environment variable overrides")

    return merge_config(file_config, env_config)
