"""
stateform Configuration Management

Centralized configuration for the planner, executor, state store and
provider. Supports environment variables, config files and runtime overrides.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field, asdict
import toml

from .exceptions import ConfigurationError, configuration_invalid_error

logger = logging.getLogger(__name__)


@dataclass
class ExecutionConfig:
    """Plan execution configuration"""
    max_workers: int = 4
    max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    retry_backoff_factor: float = 2.0


@dataclass
class StateConfig:
    """Applied-state storage configuration"""
    backend: str = "local"  # local, memory
    state_path: str = ".stateform/state"


@dataclass
class ProviderConfig:
    """Cloud provider configuration"""
    name: str = "local"
    workspace: str = ".stateform/provider"
    region: str = "us-east-1"
    account_id: str = "000000000000"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - stateform.%(name)s - %(levelname)s - %(message)s"


@dataclass
class StateformConfig:
    """Main stateform configuration"""
    project_name: str = "stateform-project"

    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    state: StateConfig = field(default_factory=StateConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_SECTIONS = (ExecutionConfig, StateConfig, ProviderConfig, LoggingConfig)

# env var -> (section, field, type)
_ENV_OVERRIDES = {
    "STATEFORM_PROJECT_NAME": (None, "project_name", str),
    "STATEFORM_MAX_WORKERS": ("execution", "max_workers", int),
    "STATEFORM_MAX_RETRIES": ("execution", "max_retries", int),
    "STATEFORM_RETRY_DELAY": ("execution", "retry_initial_delay", float),
    "STATEFORM_STATE_BACKEND": ("state", "backend", str),
    "STATEFORM_STATE_PATH": ("state", "state_path", str),
    "STATEFORM_PROVIDER": ("provider", "name", str),
    "STATEFORM_PROVIDER_WORKSPACE": ("provider", "workspace", str),
    "STATEFORM_REGION": ("provider", "region", str),
    "STATEFORM_LOG_LEVEL": ("logging", "log_level", str),
}


class ConfigManager:
    """Manages stateform configuration loading and validation"""

    def __init__(self):
        self._config: Optional[StateformConfig] = None
        self.config_file_path: Optional[Path] = None

    @property
    def config(self) -> StateformConfig:
        """Get current configuration, loading if necessary"""
        if self._config is None:
            self.load_config()
        return self._config

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> StateformConfig:
        """
        Load configuration from multiple sources in priority order:
        1. Environment variables
        2. Explicit config file path
        3. stateform.toml / pyproject.toml [tool.stateform] in current directory
        4. Default configuration
        """
        logger.debug("Loading stateform configuration...")

        self._config = StateformConfig()

        if config_path:
            self._load_from_file(Path(config_path))
            self.config_file_path = Path(config_path)
        else:
            self._discover_and_load_config_file()

        self._load_from_environment()
        self.validate()

        logger.debug(f"Configuration loaded for project: {self._config.project_name}")
        return self._config

    def _discover_and_load_config_file(self) -> None:
        """Discover and load config file from standard locations"""
        search_paths = [
            Path.cwd() / "stateform.toml",
            Path.cwd() / "pyproject.toml",
            Path.cwd() / ".stateform" / "config.toml",
        ]

        for config_path in search_paths:
            if config_path.exists():
                logger.debug(f"Found config file: {config_path}")
                self._load_from_file(config_path)
                self.config_file_path = config_path
                return

        logger.debug("No config file found, using defaults")

    def _load_from_file(self, file_path: Path) -> None:
        """Load configuration from a TOML or JSON file"""
        if not file_path.exists():
            raise ConfigurationError(
                f"Config file not found: {file_path}",
                config_file=str(file_path)
            )

        try:
            if file_path.suffix.lower() == '.json':
                with open(file_path, 'r') as f:
                    data = json.load(f)
            elif file_path.suffix.lower() in ['.toml', '.tml']:
                with open(file_path, 'r') as f:
                    data = toml.load(f)

                if file_path.name == "pyproject.toml":
                    data = data.get("tool", {}).get("stateform", {})
            else:
                raise ConfigurationError(
                    f"Unsupported config file format: {file_path.suffix}",
                    config_file=str(file_path)
                )
        except ConfigurationError:
            raise
        except (OSError, ValueError, toml.TomlDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config from {file_path}: {e}",
                config_file=str(file_path)
            ) from e

        self._merge_config_data(data)
        logger.debug(f"Loaded configuration from {file_path}")

    def _merge_config_data(self, data: Dict[str, Any]) -> None:
        """Merge configuration data into current config"""
        for field_name, value in data.items():
            if not hasattr(self._config, field_name):
                logger.warning(f"Ignoring unknown configuration key '{field_name}'")
                continue

            current_value = getattr(self._config, field_name)
            if isinstance(current_value, _SECTIONS):
                if not isinstance(value, dict):
                    raise configuration_invalid_error(field_name, value, "table")
                for nested_field, nested_value in value.items():
                    if hasattr(current_value, nested_field):
                        setattr(current_value, nested_field, nested_value)
                    else:
                        logger.warning(f"Ignoring unknown configuration key '{field_name}.{nested_field}'")
            else:
                setattr(self._config, field_name, value)

    def _load_from_environment(self) -> None:
        """Load configuration overrides from STATEFORM_* environment variables"""
        for env_var, (section, field_name, cast) in _ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue

            try:
                value = cast(raw)
            except ValueError:
                raise configuration_invalid_error(env_var, raw, cast.__name__)

            target = getattr(self._config, section) if section else self._config
            setattr(target, field_name, value)

    def validate(self) -> bool:
        """Validate current configuration"""
        cfg = self._config
        execution = cfg.execution

        if not isinstance(execution.max_workers, int) or execution.max_workers < 1:
            raise configuration_invalid_error("execution.max_workers", execution.max_workers, "positive integer")

        if not isinstance(execution.max_retries, int) or execution.max_retries < 0:
            raise configuration_invalid_error("execution.max_retries", execution.max_retries, "non-negative integer")

        for key in ("retry_initial_delay", "retry_max_delay"):
            value = getattr(execution, key)
            if not isinstance(value, (int, float)) or value < 0:
                raise configuration_invalid_error(f"execution.{key}", value, "non-negative number")

        if execution.retry_backoff_factor < 1:
            raise configuration_invalid_error(
                "execution.retry_backoff_factor", execution.retry_backoff_factor, "number >= 1"
            )

        if cfg.state.backend not in ("local", "memory"):
            raise configuration_invalid_error("state.backend", cfg.state.backend, "'local' or 'memory'")

        if cfg.provider.name != "local":
            raise configuration_invalid_error("provider.name", cfg.provider.name, "'local'")

        if cfg.logging.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise configuration_invalid_error("logging.log_level", cfg.logging.log_level, "logging level name")

        return True

    def reset(self) -> None:
        """Drop the loaded configuration; the next access reloads it"""
        self._config = None
        self.config_file_path = None


config_manager = ConfigManager()


class _ConfigProxy:
    """Attribute access to the lazily loaded global configuration"""

    def __getattr__(self, name):
        return getattr(config_manager.config, name)


config = _ConfigProxy()
