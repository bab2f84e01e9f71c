"""
Cloud instance metadata used to enrich the registration document.
"""

import json
from typing import Dict, Optional, Protocol

import httpx
import structlog

from .exceptions import MetadataFetchError
from .models import InstanceMetadata


class MetadataProvider(Protocol):
    """Source of public hostname, public IP and raw datacenter metadata."""

    async def fetch_metadata(self) -> InstanceMetadata:
        ...


# Eureka metadata key -> path on the AWS instance metadata service
AWS_METADATA_PATHS: Dict[str, str] = {
    "ami-id": "meta-data/ami-id",
    "instance-id": "meta-data/instance-id",
    "instance-type": "meta-data/instance-type",
    "local-ipv4": "meta-data/local-ipv4",
    "local-hostname": "meta-data/local-hostname",
    "availability-zone": "meta-data/placement/availability-zone",
    "public-hostname": "meta-data/public-hostname",
    "public-ipv4": "meta-data/public-ipv4",
    "mac": "meta-data/mac",
}


class AwsMetadataClient:
    """Client for the EC2 instance metadata service."""

    def __init__(
        self,
        host: str = "169.254.169.254",
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
        logger=None,
    ):
        """
        Initialize the metadata client.

        Args:
            host: Metadata service address
            timeout: Request timeout in seconds
            http_client: Client to reuse (a private one is created otherwise)
        """
        self.base_url = f"http://{host}/latest"
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self.logger = (logger or structlog.get_logger()).bind(component="aws_metadata_client")

    async def close(self):
        """Close HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def _lookup(self, path: str) -> Optional[str]:
        try:
            response = await self.client.get(f"{self.base_url}/{path}")
        except httpx.HTTPError as e:
            self.logger.error("metadata_lookup_failed", path=path, error=str(e))
            return None

        if response.status_code != 200:
            self.logger.error(
                "metadata_lookup_failed",
                path=path,
                status_code=response.status_code,
            )
            return None
        return response.text.strip()

    async def _lookup_account_id(self) -> Optional[str]:
        document = await self._lookup("dynamic/instance-identity/document")
        if not document:
            return None
        try:
            return json.loads(document).get("accountId")
        except (ValueError, AttributeError):
            self.logger.error("identity_document_invalid")
            return None

    async def fetch_metadata(self) -> InstanceMetadata:
        """
        Fetch the metadata fields Eureka expects for Amazon datacenters.

        Individual keys that cannot be read are left out.

        Raises:
            MetadataFetchError: if nothing at all could be read
        """
        raw: Dict[str, str] = {}
        for key, path in AWS_METADATA_PATHS.items():
            value = await self._lookup(path)
            if value is not None:
                raw[key] = value

        if "mac" in raw:
            vpc_id = await self._lookup(f"meta-data/network/interfaces/macs/{raw['mac']}/vpc-id")
            if vpc_id is not None:
                raw["vpc-id"] = vpc_id

        account_id = await self._lookup_account_id()
        if account_id:
            raw["accountId"] = account_id

        if not raw:
            raise MetadataFetchError("Unable to read any value from the instance metadata service")

        self.logger.debug("metadata_fetched", keys=sorted(raw))
        return InstanceMetadata(
            public_hostname=raw.get("public-hostname"),
            public_ipv4=raw.get("public-ipv4"),
            raw=raw,
        )
