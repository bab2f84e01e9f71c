"""
Data models for the Eureka client: the local instance document, peer records
returned by the registry, and the cached registry index.
"""

from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


HOST_PLACEHOLDER = "__HOST__"


class InstanceStatus(str, Enum):
    """Instance status as understood by Eureka"""
    UP = "UP"
    DOWN = "DOWN"
    STARTING = "STARTING"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    UNKNOWN = "UNKNOWN"


class DataCenterInfo(BaseModel):
    """Datacenter descriptor sent with the instance document."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_amazon(self) -> bool:
        return bool(self.name) and self.name.lower() == "amazon"


class InstanceMetadata(BaseModel):
    """Result of a cloud metadata fetch."""
    public_hostname: Optional[str] = None
    public_ipv4: Optional[str] = None
    raw: Dict[str, str] = Field(default_factory=dict)


class InstanceRecord(BaseModel):
    """
    Registration document of the local instance.

    Field names follow Python conventions; aliases match the Eureka wire
    format. Extra keys provided by configuration are kept and sent as-is.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    app: str
    vip_address: str = Field(alias="vipAddress")
    port: Any
    data_center_info: DataCenterInfo = Field(alias="dataCenterInfo")
    instance_id: Optional[str] = Field(default=None, alias="instanceId")
    host_name: Optional[str] = Field(default=None, alias="hostName")
    ip_addr: Optional[str] = Field(default=None, alias="ipAddr")
    status: InstanceStatus = InstanceStatus.STARTING
    status_page_url: Optional[str] = Field(default=None, alias="statusPageUrl")
    health_check_url: Optional[str] = Field(default=None, alias="healthCheckUrl")

    def apply_metadata(self, metadata: InstanceMetadata) -> None:
        """
        Merge fetched cloud metadata into the record.

        The raw metadata map is merged over the configured datacenter metadata,
        hostName/ipAddr take the public values and the host placeholder in the
        status page and health check URLs is replaced by the public hostname.
        """
        self.data_center_info.metadata = {
            **self.data_center_info.metadata,
            **metadata.raw,
        }
        self.host_name = metadata.public_hostname
        self.ip_addr = metadata.public_ipv4

        if self.status_page_url and metadata.public_hostname:
            self.status_page_url = self.status_page_url.replace(
                HOST_PLACEHOLDER, metadata.public_hostname
            )
        if self.health_check_url and metadata.public_hostname:
            self.health_check_url = self.health_check_url.replace(
                HOST_PLACEHOLDER, metadata.public_hostname
            )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with Eureka field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PeerInstance(BaseModel):
    """Instance entry returned by the registry."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    vip_address: Optional[str] = Field(default=None, alias="vipAddress")
    instance_id: Optional[str] = Field(default=None, alias="instanceId")
    app: Optional[str] = None
    host_name: Optional[str] = Field(default=None, alias="hostName")
    ip_addr: Optional[str] = Field(default=None, alias="ipAddr")
    status: Optional[str] = None
    port: Any = None


class RegistryIndex:
    """
    Snapshot of the registry built from a single fetch.

    Both mappings are read-only and are published together by replacing the
    whole index object.
    """

    __slots__ = ("_apps", "_vips", "fetched_at")

    def __init__(
        self,
        apps: Optional[Dict[str, Tuple[PeerInstance, ...]]] = None,
        vips: Optional[Dict[str, Tuple[PeerInstance, ...]]] = None,
        fetched_at: Optional[datetime] = None,
    ):
        self._apps: Mapping[str, Tuple[PeerInstance, ...]] = MappingProxyType(dict(apps or {}))
        self._vips: Mapping[str, Tuple[PeerInstance, ...]] = MappingProxyType(dict(vips or {}))
        self.fetched_at = fetched_at

    @property
    def apps(self) -> Mapping[str, Tuple[PeerInstance, ...]]:
        return self._apps

    @property
    def vips(self) -> Mapping[str, Tuple[PeerInstance, ...]]:
        return self._vips

    def __len__(self) -> int:
        return len(self._apps)


class LifecycleStep(BaseModel):
    """Individual stage of client startup."""
    step_name: str
    status: str  # completed, skipped, failed
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None


class LifecycleResult(BaseModel):
    """Outcome of the startup pipeline."""
    success: bool
    steps: List[LifecycleStep]
    total_duration_ms: int
    error: Optional[str] = None
