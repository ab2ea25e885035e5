"""
Configuration management for the AgileStack core.

Configuration is read from .env, YAML and JSON files into the process
environment, so that values set by the container orchestrator (plain
environment variables) and values from files are read the same way.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
import yaml
from jsonschema import validate, ValidationError

from .utils import parse_bool, split_csv

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"

DEFAULT_CONFIG_PATHS = [
    Path.cwd() / ".env",
    CONFIG_DIR / "core_config.yaml",
]

CORE_CONFIG_SCHEMA = CONFIG_DIR / "core_config.schema.json"


def _flatten_dict(d: Dict[str, Any], parent_key: str = "", sep: str = "_") -> Dict[str, str]:
    """
    Recursively flattens a nested dictionary into environment-style
    keys (uppercase, underscore separated) and string values.
    Example:
        {"nats": {"url": "nats://localhost:4222"}}
        -> {"NATS_URL": "nats://localhost:4222"}
    Lists are joined with commas.
    """
    items = {}
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.update(_flatten_dict(v, new_key, sep=sep))
        elif isinstance(v, (list, tuple)):
            items[new_key.upper()] = ",".join(str(item) for item in v)
        elif isinstance(v, bool):
            items[new_key.upper()] = "true" if v else "false"
        else:
            items[new_key.upper()] = str(v)
    return items


def _set_env_vars(config: Dict[str, Any], overwrite: bool = False):
    """Set environment variables from dictionary."""
    for key, value in config.items():
        if not overwrite and key in os.environ:
            continue
        os.environ[key] = str(value)
        logger.debug(f"Set environment variable: {key}={value}")


def _load_from_env_file(env_path: Path, overwrite: bool = True) -> bool:
    """Load variables from a .env file."""
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=overwrite)
        logger.info(f"Loaded environment variables from {env_path}")
        return True
    return False


def _load_from_yaml(yaml_path: Path, overwrite: bool = True) -> bool:
    """
    Load environment variables from a YAML file.
    Supports both flat and grouped YAML structures.
    Example grouped YAML:
        docker:
          network: agilestacknet
          stop_timeout: 10
    Will produce env vars:
        DOCKER_NETWORK=agilestacknet
        DOCKER_STOP_TIMEOUT=10
    """
    if not yaml_path.exists():
        logger.warning(f"YAML config file not found: {yaml_path}")
        return False

    try:
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            logger.error(f"YAML file {yaml_path} is not a mapping at root level.")
            return False

        flat_data = _flatten_dict(data)
        _set_env_vars(flat_data, overwrite=overwrite)
        logger.info(f"Loaded environment variables from {yaml_path}")
        return True

    except yaml.YAMLError as e:
        logger.exception(f"Failed to parse YAML config {yaml_path}: {e}")

    return False


def _load_from_json(json_path: Path, overwrite: bool = True) -> bool:
    """Load variables from a JSON config file."""
    if json_path.exists():
        with open(json_path, "r") as f:
            data = json.load(f) or {}
        _set_env_vars(_flatten_dict(data), overwrite=overwrite)
        logger.info(f"Loaded environment variables from {json_path}")
        return True
    return False


def load_config(
    search_paths: Optional[list] = None,
    overwrite: bool = False,
    required_keys: Optional[list] = None
):
    """
    Load configuration variables into os.environ.

    Values already present in the environment win unless ``overwrite`` is
    set, so a container's environment overrides the bundled defaults.

    Args:
        search_paths (list): Optional list of file paths to check.
        overwrite (bool): Whether to overwrite existing env vars.
        required_keys (list): List of keys that must be present after load.

    Raises:
        ValueError: If required keys are missing.
    """
    search_paths = search_paths or DEFAULT_CONFIG_PATHS

    loaded = False
    for path in search_paths:
        path = Path(path)
        if path.suffix == ".env" or path.name == ".env":
            loaded = _load_from_env_file(path, overwrite=overwrite) or loaded
        elif path.suffix in [".yaml", ".yml"]:
            loaded = _load_from_yaml(path, overwrite=overwrite) or loaded
        elif path.suffix == ".json":
            loaded = _load_from_json(path, overwrite=overwrite) or loaded

    if not loaded:
        logger.warning("No configuration file found, relying on system env vars only.")

    if required_keys:
        missing = [key for key in required_keys if not os.environ.get(key)]
        if missing:
            raise ValueError(f"Missing required config keys: {missing}")

    return True


def get_config(key: str, default: Any = None, cast_type: type = str):
    """
    Get a configuration value from the environment.

    Args:
        key (str): Environment variable name.
        default (Any): Default value if not found.
        cast_type (type): Type to cast the value into.

    Returns:
        Any: The configuration value.
    """
    value = os.environ.get(key, default)
    try:
        return cast_type(value) if value is not None else None
    except (TypeError, ValueError):
        logger.warning(f"Failed to cast config value for key '{key}' to {cast_type.__name__}")
        return default


@dataclass
class CoreSettings:
    """Snapshot of the settings the registry service runs with."""

    nats_url: str = "nats://agilestack-nats.agilestacknet:4222"
    nats_client_name: str = "agilestack-core"
    shared_folder: Optional[str] = None
    plugin_prefix: str = "agilestack-"
    plugin_network: str = "agilestacknet"
    shared_volume: str = "agilestack-shared:/shared"
    stop_timeout: int = 10
    topic_namespace: str = "core"
    protected_plugins: List[str] = field(default_factory=lambda: ["agilestack-backoffice"])
    cleanup_on_shutdown: bool = True
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> "CoreSettings":
        defaults = cls()
        protected = os.environ.get("PROTECTED_PLUGINS")
        return cls(
            nats_url=get_config("NATS_URL", defaults.nats_url),
            nats_client_name=get_config("NATS_CLIENT_NAME", defaults.nats_client_name),
            shared_folder=get_config("SHARED_FOLDER", None),
            plugin_prefix=get_config("PLUGIN_PREFIX", defaults.plugin_prefix),
            plugin_network=get_config("PLUGIN_NETWORK", defaults.plugin_network),
            shared_volume=get_config("SHARED_VOLUME", defaults.shared_volume),
            stop_timeout=get_config("STOP_TIMEOUT", defaults.stop_timeout, int),
            topic_namespace=get_config("TOPIC_NAMESPACE", defaults.topic_namespace),
            protected_plugins=(
                split_csv(protected) if protected is not None else defaults.protected_plugins
            ),
            cleanup_on_shutdown=parse_bool(
                get_config("CLEANUP_ON_SHUTDOWN", str(defaults.cleanup_on_shutdown))
            ),
            log_level=get_config("LOG_LEVEL", defaults.log_level).upper(),
            log_format=get_config("LOG_FORMAT", defaults.log_format).lower(),
        )


class ConfigurationManager:
    """Loads the core configuration file and validates it against its schema."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize configuration manager.

        Args:
            logger: Logger instance for structured logging
        """
        self.logger = logger or logging.getLogger(__name__)
        self.core_config: Dict[str, Any] = {}
        self.schema: Optional[Dict[str, Any]] = None

    def load_schema(self, schema_path: Union[str, Path] = CORE_CONFIG_SCHEMA) -> Dict[str, Any]:
        """Load the JSON schema used to validate the core configuration.

        Raises:
            ValueError: If schema file not found
        """
        schema_path = Path(schema_path)

        if not schema_path.exists():
            raise ValueError(f"Schema file not found: {schema_path}")

        with open(schema_path, 'r') as f:
            self.schema = json.load(f)

        self.logger.debug("Schema loaded", extra={"schema_path": str(schema_path)})
        return self.schema

    def load_core_config(
        self,
        config_path: Union[str, Path],
        validate_schema: bool = True,
        overwrite: bool = False,
    ) -> Dict[str, Any]:
        """Load the core configuration file and export it to the environment.

        Args:
            config_path: Path to a YAML or JSON configuration file
            validate_schema: Whether to validate against the core schema
            overwrite: Whether file values replace existing env vars

        Returns:
            Loaded configuration dictionary

        Raises:
            ValueError: If the file is missing or has an unsupported type
            ValidationError: If the configuration does not match the schema
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ValueError(f"Configuration file not found: {config_path}")

        if config_path.suffix in ['.yaml', '.yml']:
            with open(config_path, 'r') as f:
                self.core_config = yaml.safe_load(f) or {}
        elif config_path.suffix == '.json':
            with open(config_path, 'r') as f:
                self.core_config = json.load(f)
        else:
            raise ValueError(f"Unsupported config file type: {config_path.suffix}")

        if validate_schema:
            if self.schema is None:
                self.load_schema()
            self.validate_config(self.core_config)

        _set_env_vars(_flatten_dict(self.core_config), overwrite=overwrite)

        self.logger.info(
            "Core configuration loaded",
            extra={"config_path": str(config_path)}
        )
        return self.core_config

    def validate_config(
        self,
        config: Dict[str, Any],
        schema: Optional[Dict[str, Any]] = None
    ) -> None:
        """Validate configuration against JSON schema.

        Raises:
            ValidationError: If configuration doesn't match schema
            ValueError: If no schema is loaded
        """
        schema = schema or self.schema
        if not schema:
            raise ValueError("No schema available for validation")

        try:
            validate(instance=config, schema=schema)
            self.logger.debug("Configuration validation successful")
        except ValidationError as e:
            self.logger.error(
                "Configuration validation failed",
                extra={
                    "error": e.message,
                    "path": list(e.path) if e.path else None,
                }
            )
            raise
