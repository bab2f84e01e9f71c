"""
Eureka Client Library

Registers instances with a Eureka server, sends heartbeats and keeps a local
cache of the registry for peer lookup.
"""

__version__ = "1.0.0"

from eureka_client.client import EurekaClient, Stage, run_stages
from eureka_client.config import EurekaClientConfig, RegistryServerConfig, load_config
from eureka_client.exceptions import (
    ConfigurationError,
    DeregistrationError,
    DnsResolutionError,
    EurekaClientError,
    InvalidIdentifierError,
    MetadataFetchError,
    RegistrationError,
    RegistryFetchError,
)
from eureka_client.logging_config import configure_logging
from eureka_client.metadata import AwsMetadataClient, MetadataProvider
from eureka_client.models import (
    DataCenterInfo,
    InstanceMetadata,
    InstanceRecord,
    InstanceStatus,
    LifecycleResult,
    PeerInstance,
    RegistryIndex,
)
from eureka_client.registration import RegistrationManager, RegistrationState
from eureka_client.registry_cache import RegistryCache
from eureka_client.resolver import DnsTxtResolver, ServerResolver

__all__ = [
    "EurekaClient",
    "Stage",
    "run_stages",
    "EurekaClientConfig",
    "RegistryServerConfig",
    "load_config",
    "configure_logging",
    "ConfigurationError",
    "DeregistrationError",
    "DnsResolutionError",
    "EurekaClientError",
    "InvalidIdentifierError",
    "MetadataFetchError",
    "RegistrationError",
    "RegistryFetchError",
    "AwsMetadataClient",
    "MetadataProvider",
    "DataCenterInfo",
    "InstanceMetadata",
    "InstanceRecord",
    "InstanceStatus",
    "LifecycleResult",
    "PeerInstance",
    "RegistryIndex",
    "RegistrationManager",
    "RegistrationState",
    "RegistryCache",
    "DnsTxtResolver",
    "ServerResolver",
]
