"""Environment variable configuration.

Settings are read from an optional ``.env`` file overlaid on the process
environment. Only the provider settings are configurable; the pipeline
constants live in :mod:`digitscan.config.defaults`.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.exceptions import ConfigError
from .defaults import DEFAULT_CONFIG, LOG_FORMATS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    gemini_api_key: Optional[str]
    gemini_model: str
    gemini_timeout: int
    gemini_temperature: float
    gemini_max_tokens: int

    debug_logging: bool
    log_dir: Optional[str]
    log_format: str = DEFAULT_CONFIG["log_format"]

    @property
    def is_api_key_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def structured_logging(self) -> bool:
        return self.log_format == "json"


class EnvironmentValidator:
    """Validates environment variable values."""

    GEMINI_API_KEY_PATTERN = re.compile(r'^AIza[0-9A-Za-z_-]{35}$')

    @classmethod
    def validate_api_key(cls, api_key: str) -> bool:
        """Check that an API key looks like a Google AI key.

        A mismatch is only a warning: the provider is the authority on whether
        a key is valid and reports rejection as an authentication failure.
        """
        if not api_key or not isinstance(api_key, str):
            return False
        return bool(cls.GEMINI_API_KEY_PATTERN.match(api_key))

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                               min_val: Optional[Union[int, float]] = None,
                               max_val: Optional[Union[int, float]] = None,
                               value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            ConfigError: If the value is not numeric or out of range
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise ConfigError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise ConfigError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value


def load_env_file(env_path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file.

    Args:
        env_path: Path to .env file. Defaults to .env in current directory.

    Returns:
        dict: Loaded variables (empty when the file does not exist)
    """
    env_file_path = Path(env_path) if env_path else Path(".env")
    env_vars: Dict[str, str] = {}

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_file_path} not found, using system environment only")
        return env_vars

    with open(env_file_path, 'r', encoding='utf-8') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            # Skip comments and empty lines
            if not line or line.startswith('#'):
                continue

            if line.startswith('export '):
                line = line[len('export '):]

            if '=' not in line:
                logger.warning(f"Invalid line format in {env_file_path}:{line_num}")
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            # Remove quotes if present
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]

            env_vars[key] = value

    logger.debug(f"Loaded {len(env_vars)} variables from {env_file_path}")
    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Get a variable from the loaded .env values, then the process environment."""
    if env_vars and key in env_vars:
        return env_vars[key]
    return os.getenv(key, default)


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ('true', '1', 'yes', 'on')


def load_environment_config(env_file_path: Optional[Union[str, Path]] = None) -> EnvironmentConfig:
    """Load and validate environment configuration.

    Args:
        env_file_path: Path to .env file

    Returns:
        EnvironmentConfig: Validated configuration object

    Raises:
        ConfigError: If a numeric setting is malformed or out of range, or LOG_FORMAT is unknown
    """
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()

    api_key = (get_env_var("GEMINI_API_KEY", env_vars=env_vars) or "").strip() or None
    if api_key and not validator.validate_api_key(api_key):
        logger.warning("GEMINI_API_KEY does not match the expected Google AI key format")

    model = get_env_var("GEMINI_MODEL", env_vars=env_vars) or DEFAULT_CONFIG["gemini_model"]

    timeout = validator.validate_numeric_range(
        get_env_var("GEMINI_TIMEOUT", str(DEFAULT_CONFIG["gemini_timeout"]), env_vars=env_vars),
        5, 300, int)
    temperature = validator.validate_numeric_range(
        get_env_var("GEMINI_TEMPERATURE", str(DEFAULT_CONFIG["gemini_temperature"]), env_vars=env_vars),
        0.0, 1.0, float)
    max_tokens = validator.validate_numeric_range(
        get_env_var("GEMINI_MAX_TOKENS", str(DEFAULT_CONFIG["gemini_max_tokens"]), env_vars=env_vars),
        1, 8192, int)

    log_format = (get_env_var("LOG_FORMAT", env_vars=env_vars)
                  or DEFAULT_CONFIG["log_format"]).strip().lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"LOG_FORMAT must be one of {LOG_FORMATS}, got {log_format!r}")

    config = EnvironmentConfig(
        gemini_api_key=api_key,
        gemini_model=model,
        gemini_timeout=timeout,
        gemini_temperature=temperature,
        gemini_max_tokens=max_tokens,
        debug_logging=_as_bool(get_env_var("DEBUG_LOGGING", "false", env_vars=env_vars)),
        log_dir=get_env_var("LOG_DIR", env_vars=env_vars) or None,
        log_format=log_format,
    )

    if config.is_api_key_configured:
        logger.info(f"Environment configuration loaded (model={model}, timeout={timeout}s)")
    else:
        logger.info("Environment configuration loaded - GEMINI_API_KEY is not set")

    return config


__all__ = [
    "EnvironmentConfig",
    "EnvironmentValidator",
    "load_environment_config",
    "load_env_file",
    "get_env_var",
]
