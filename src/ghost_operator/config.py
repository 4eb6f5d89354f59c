"""Configuration management for Ghost Operator.

Configuration can be loaded from environment variables, YAML/TOML files, or
direct instantiation.

Classes:
    OperatorConfig: Main configuration dataclass with validation.

Example:
    >>> from ghost_operator.config import OperatorConfig
    >>>
    >>> # Load from environment variables
    >>> config = OperatorConfig.from_env()
    >>>
    >>> # Load from file with env overrides
    >>> config = OperatorConfig.from_file("ghost-operator.yaml")
    >>>
    >>> # Recommended: automatic loading with fallback
    >>> config = OperatorConfig.load()
    >>> config.validate()
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

from .constants import (
    DEFAULT_ACTIVITY_LOG_SIZE,
    DEFAULT_DATABASE_PATH,
    DEFAULT_MEMORY_SEARCH_LIMIT,
    DEFAULT_REDUNDANCY_TARGET,
    DEFAULT_RENDER_BASE_URL,
    DEFAULT_SENSO_BASE_URL,
    DEFAULT_SIMILAR_INCIDENT_LIMIT,
    DEFAULT_VALIDATION_DELAY_SECONDS,
    VALID_LOG_LEVELS,
)
from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "GHOST_OPERATOR_"


def _get_int_env(key: str, default: int) -> int:
    """Safely get a positive integer from an environment variable.

    Returns the default value if the variable is not set, cannot be parsed,
    or is not a positive integer.

    Example:
        >>> os.environ['GHOST_OPERATOR_REDUNDANCY_TARGET'] = '3'
        >>> _get_int_env('GHOST_OPERATOR_REDUNDANCY_TARGET', 2)
        3
    """
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = int(value)
        if result <= 0:
            logger.warning(
                f"Environment variable {key}={value} must be positive. Using default: {default}"
            )
            return default
        return result
    except ValueError:
        logger.warning(
            f"Environment variable {key}={value} is not a valid integer. Using default: {default}"
        )
        return default


def _get_float_env(key: str, default: float) -> float:
    """Like ``_get_int_env`` for non-negative floats (zero allowed)."""
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = float(value)
        if result < 0:
            logger.warning(
                f"Environment variable {key}={value} must not be negative. Using default: {default}"
            )
            return default
        return result
    except ValueError:
        logger.warning(
            f"Environment variable {key}={value} is not a valid number. Using default: {default}"
        )
        return default


@dataclass
class OperatorConfig:
    """
    Configuration for Ghost Operator.

    Configuration can be loaded from:
    1. Configuration files (YAML or TOML)
    2. Environment variables (override file settings)
    3. Direct instantiation with parameters

    Environment variables:
        GHOST_OPERATOR_VALIDATION_DELAY: Seconds before re-checking health (default: 10)
        GHOST_OPERATOR_REDUNDANCY_TARGET: Instance count for scale actions (default: 2)
        GHOST_OPERATOR_SIMILAR_INCIDENT_LIMIT: Past incidents consulted (default: 5)
        GHOST_OPERATOR_MEMORY_SEARCH_LIMIT: Memory search results consulted (default: 5)
        GHOST_OPERATOR_ACTIVITY_LOG_SIZE: Activity entries kept (default: 500)
        GHOST_OPERATOR_DATABASE_PATH: SQLite incident store path
        GHOST_OPERATOR_RENDER_API_KEY / GHOST_OPERATOR_RENDER_BASE_URL
        GHOST_OPERATOR_SENSO_API_KEY / GHOST_OPERATOR_SENSO_BASE_URL
        GHOST_OPERATOR_SENSO_ORG_ID
        GHOST_OPERATOR_LOG_LEVEL: Logging level (default: "INFO")
        GHOST_OPERATOR_LOG_FILE: Log file path (optional)

    Config file locations (searched in order):
        ./ghost-operator.yaml, ./ghost-operator.toml
        ~/.ghost-operator.yaml, ~/.ghost-operator.toml
        /etc/ghost-operator.yaml, /etc/ghost-operator.toml
    """
    # Remediation
    validation_delay_seconds: float = DEFAULT_VALIDATION_DELAY_SECONDS
    redundancy_target: int = DEFAULT_REDUNDANCY_TARGET

    # History
    similar_incident_limit: int = DEFAULT_SIMILAR_INCIDENT_LIMIT
    memory_search_limit: int = DEFAULT_MEMORY_SEARCH_LIMIT

    # Orchestration and storage
    activity_log_size: int = DEFAULT_ACTIVITY_LOG_SIZE
    database_path: str = DEFAULT_DATABASE_PATH

    # Collaborators
    render_api_key: Optional[str] = None
    render_base_url: str = DEFAULT_RENDER_BASE_URL
    senso_api_key: Optional[str] = None
    senso_base_url: str = DEFAULT_SENSO_BASE_URL
    senso_org_id: str = ""

    # Logging configuration
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            InvalidConfigError: If any configuration value is invalid
        """
        errors = []

        if self.validation_delay_seconds < 0:
            errors.append(
                f"validation_delay_seconds must not be negative, got {self.validation_delay_seconds}"
            )
        if self.redundancy_target <= 0:
            errors.append(f"redundancy_target must be positive, got {self.redundancy_target}")
        if self.similar_incident_limit <= 0:
            errors.append(
                f"similar_incident_limit must be positive, got {self.similar_incident_limit}"
            )
        if self.memory_search_limit <= 0:
            errors.append(f"memory_search_limit must be positive, got {self.memory_search_limit}")
        if self.activity_log_size <= 0:
            errors.append(f"activity_log_size must be positive, got {self.activity_log_size}")
        if not self.database_path:
            errors.append("database_path must not be empty")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{self.log_level}'"
            )

        if errors:
            raise InvalidConfigError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

    @property
    def uses_render(self) -> bool:
        return bool(self.render_api_key)

    @property
    def uses_senso(self) -> bool:
        return bool(self.senso_api_key)

    @classmethod
    def from_env(cls) -> 'OperatorConfig':
        """
        Create configuration from environment variables only.

        Returns:
            OperatorConfig instance populated from environment variables
        """
        return cls(
            validation_delay_seconds=_get_float_env(
                f"{ENV_PREFIX}VALIDATION_DELAY", DEFAULT_VALIDATION_DELAY_SECONDS
            ),
            redundancy_target=_get_int_env(
                f"{ENV_PREFIX}REDUNDANCY_TARGET", DEFAULT_REDUNDANCY_TARGET
            ),
            similar_incident_limit=_get_int_env(
                f"{ENV_PREFIX}SIMILAR_INCIDENT_LIMIT", DEFAULT_SIMILAR_INCIDENT_LIMIT
            ),
            memory_search_limit=_get_int_env(
                f"{ENV_PREFIX}MEMORY_SEARCH_LIMIT", DEFAULT_MEMORY_SEARCH_LIMIT
            ),
            activity_log_size=_get_int_env(
                f"{ENV_PREFIX}ACTIVITY_LOG_SIZE", DEFAULT_ACTIVITY_LOG_SIZE
            ),
            database_path=os.getenv(f"{ENV_PREFIX}DATABASE_PATH", DEFAULT_DATABASE_PATH),
            render_api_key=os.getenv(f"{ENV_PREFIX}RENDER_API_KEY"),
            render_base_url=os.getenv(f"{ENV_PREFIX}RENDER_BASE_URL", DEFAULT_RENDER_BASE_URL),
            senso_api_key=os.getenv(f"{ENV_PREFIX}SENSO_API_KEY"),
            senso_base_url=os.getenv(f"{ENV_PREFIX}SENSO_BASE_URL", DEFAULT_SENSO_BASE_URL),
            senso_org_id=os.getenv(f"{ENV_PREFIX}SENSO_ORG_ID", ""),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
            log_file=os.getenv(f"{ENV_PREFIX}LOG_FILE"),
        )

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> 'OperatorConfig':
        """
        Create configuration from file with environment variable overrides.

        If no path is provided, standard locations are searched. A file that
        cannot be loaded falls back to environment-only configuration.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            OperatorConfig instance with merged configuration
        """
        from .config_loader import load_config_with_overrides

        try:
            config_dict = load_config_with_overrides(config_path)
            return cls(**config_dict)
        except Exception as e:
            logger.error(f"Failed to load configuration from file: {e}")
            logger.warning("Falling back to environment variable configuration")
            return cls.from_env()

    @classmethod
    def load(cls, config_path: Optional[str] = None, use_file: bool = True) -> 'OperatorConfig':
        """
        Load configuration with automatic fallback.

        Example:
            >>> config = OperatorConfig.load()                 # file, then env
            >>> config = OperatorConfig.load("ops.toml")       # specific file
            >>> config = OperatorConfig.load(use_file=False)   # env only
        """
        if use_file:
            return cls.from_file(config_path)
        else:
            return cls.from_env()
