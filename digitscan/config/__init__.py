"""Configuration package."""
from .env_config import EnvironmentConfig, load_environment_config

__all__ = ["EnvironmentConfig", "load_environment_config"]
