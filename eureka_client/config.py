"""
Typed configuration for the Eureka client and the YAML-based loader that
assembles it.

Configuration is merged in this order, later sources winning:
built-in defaults, ``<dir>/<filename>.yml``, ``<dir>/<filename>-<env>.yml``
and finally the overrides passed by the caller.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import ConfigurationError
from .models import InstanceRecord
from .settings import get_settings

logger = structlog.get_logger()

# Interval keys expressed in milliseconds, as written by existing eureka-client.yml files
MILLISECOND_KEYS = {
    "heartbeatInterval": "heartbeat_interval_seconds",
    "registryFetchInterval": "registry_fetch_interval_seconds",
}


def _convert_millisecond_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    if not any(key in data for key in MILLISECOND_KEYS):
        return data

    converted = dict(data)
    for key, field_name in MILLISECOND_KEYS.items():
        if key not in converted:
            continue
        value = converted.pop(key)
        try:
            converted[field_name] = float(value) / 1000.0
        except (TypeError, ValueError) as e:
            raise ValueError(f"eureka.{key} must be a number of milliseconds, got {value!r}") from e
    return converted


class RegistryServerConfig(BaseModel):
    """Connection and scheduling settings for the Eureka server."""
    model_config = ConfigDict(populate_by_name=True)

    host: str = ""
    port: int = 8761
    service_path: str = Field(default="/eureka/v2/apps/", alias="servicePath")
    ssl: bool = False

    # DNS discovery (Amazon datacenters only)
    ec2_region: Optional[str] = Field(default=None, alias="ec2Region")
    use_dns: bool = Field(default=False, alias="useDns")

    heartbeat_interval_seconds: float = 30.0
    registry_fetch_interval_seconds: float = 30.0
    fetch_registry: bool = Field(default=True, alias="fetchRegistry")
    fetch_metadata: bool = Field(default=True, alias="fetchMetadata")

    request_timeout_seconds: float = 10.0
    registration_warning_seconds: float = 10.0

    @model_validator(mode="before")
    @classmethod
    def accept_millisecond_intervals(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return _convert_millisecond_keys(data)
        return data


class EurekaClientConfig(BaseModel):
    """Complete, validated client configuration."""
    instance: InstanceRecord
    eureka: RegistryServerConfig = Field(default_factory=RegistryServerConfig)


DEFAULT_CONFIG: Dict[str, Any] = {
    "instance": {},
    "eureka": RegistryServerConfig().model_dump(),
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping, returning an empty dict when the file is unusable."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.debug("config_file_skipped", path=str(path), reason=str(e))
        return {}

    if not isinstance(data, dict):
        logger.warning("config_file_not_a_mapping", path=str(path))
        return {}

    logger.debug("config_file_loaded", path=str(path))
    return data


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    # Aliases and field names both land on the field name so merging is stable
    eureka = data.get("eureka")
    if isinstance(eureka, dict):
        normalized = {}
        try:
            eureka = _convert_millisecond_keys(eureka)
        except ValueError as e:
            raise ConfigurationError(f"Invalid eureka client configuration: {e}") from e
        for key, value in eureka.items():
            field_name = key
            for name, info in RegistryServerConfig.model_fields.items():
                if info.alias == key:
                    field_name = name
                    break
            normalized[field_name] = value
        data = {**data, "eureka": normalized}
    return data


def load_config(
    config_dir: Optional[str] = None,
    filename: Optional[str] = None,
    environment: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> EurekaClientConfig:
    """
    Assemble the client configuration from defaults, YAML files and overrides.

    Args:
        config_dir: Directory holding the YAML files (defaults to CONFIG_DIR)
        filename: Base file name without extension (defaults to CONFIG_FILENAME)
        environment: Environment suffix (defaults to ENVIRONMENT)
        overrides: Values that take precedence over every file

    Returns:
        Validated EurekaClientConfig

    Raises:
        ConfigurationError: if the merged configuration is invalid
    """
    settings = get_settings()
    directory = Path(config_dir or settings.CONFIG_DIR)
    base_name = filename or settings.CONFIG_FILENAME
    env = environment or settings.ENVIRONMENT

    merged = copy.deepcopy(DEFAULT_CONFIG)
    for path in (directory / f"{base_name}.yml", directory / f"{base_name}-{env}.yml"):
        merged = deep_merge(merged, _normalize_keys(_read_yaml(path)))
    if overrides:
        merged = deep_merge(merged, _normalize_keys(overrides))

    try:
        config = EurekaClientConfig.model_validate(merged)
    except ValueError as e:
        raise ConfigurationError(f"Invalid eureka client configuration: {e}") from e

    logger.info(
        "eureka_config_loaded",
        app=config.instance.app,
        eureka_host=config.eureka.host,
        environment=env,
    )
    return config


def validate_config(config: EurekaClientConfig) -> None:
    """
    Check that every value required to talk to Eureka is present.

    Raises:
        ConfigurationError: naming the first missing value
    """
    def require(namespace: str, key: str, value: Any) -> None:
        if not value:
            raise ConfigurationError(f'Missing "{namespace}.{key}" config value.')

    instance = config.instance
    require("instance", "app", instance.app)
    require("instance", "vipAddress", instance.vip_address)
    require("instance", "port", instance.port)
    require("instance", "dataCenterInfo", instance.data_center_info and instance.data_center_info.name)
    require("eureka", "host", config.eureka.host)
    require("eureka", "port", config.eureka.port)

    if instance.data_center_info.is_amazon and config.eureka.use_dns:
        require("eureka", "ec2Region", config.eureka.ec2_region)
