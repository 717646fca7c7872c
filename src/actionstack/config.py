"""
Configuration management for Actionstack

Provides environment-based configuration with sensible defaults and an
optional YAML configuration file.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from actionstack.core.errors import ConfigurationError, ErrorCode
from actionstack.core.models import Strategy

DEFAULT_CONFIG_PATH = Path.home() / '.actionstack' / 'config.yaml'


@dataclass
class ActionstackConfig:
    """Runtime configuration for stores created by tools and the CLI"""

    # Admission strategy for root dispatches
    strategy: str = Strategy.EXCLUSIVE.value

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self):
        """Load configuration from environment variables"""
        self.strategy = os.getenv('ACTIONSTACK_STRATEGY', self.strategy)
        self.log_level = os.getenv('ACTIONSTACK_LOG_LEVEL', self.log_level)
        self.log_format = os.getenv('ACTIONSTACK_LOG_FORMAT', self.log_format)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            'strategy': self.strategy,
            'log_level': self.log_level,
            'log_format': self.log_format,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActionstackConfig':
        """Create configuration from dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def validate(self) -> bool:
        """Validate configuration"""
        if self.strategy not in {strategy.value for strategy in Strategy}:
            raise ConfigurationError(
                f"Unknown strategy '{self.strategy}'",
                code=ErrorCode.UNKNOWN_STRATEGY,
                data={'strategy': self.strategy},
            )

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(
                f"Unknown log level '{self.log_level}'",
                data={'log_level': self.log_level},
            )

        return True


def load_config(path: Optional[Union[str, Path]] = None) -> ActionstackConfig:
    """
    Load configuration from a YAML file.

    Without a path the default ``~/.actionstack/config.yaml`` is used when it
    exists. Environment variables still override file values.
    """
    config_file = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_file.exists():
        if path is not None:
            raise ConfigurationError(
                f"Configuration file not found: {config_file}",
                data={'path': str(config_file)},
            )
        return ActionstackConfig()

    with open(config_file, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping: {config_file}",
            data={'path': str(config_file)},
        )

    return ActionstackConfig.from_dict(data)


def setup_logging(config: ActionstackConfig) -> None:
    """Setup logging based on configuration"""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=config.log_format,
    )

    if config.log_level.upper() == 'DEBUG':
        logging.getLogger('actionstack').setLevel(logging.DEBUG)
