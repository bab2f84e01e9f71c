"""
Eureka server address resolution.

The server is either taken from static configuration or located with two DNS
TXT lookups following the Eureka AWS naming convention:

    txt.<region>.<host>    -> space separated list of per-zone record names
    txt.<zone record>      -> Eureka server host names
"""

import random
from typing import Callable, List, Optional, Protocol, Sequence

import dns.asyncresolver
import dns.exception
import structlog

from .config import EurekaClientConfig
from .exceptions import DnsResolutionError


class TxtResolver(Protocol):
    """Async TXT lookup returning the strings of every record in the answer."""

    async def resolve_txt(self, name: str) -> List[List[str]]:
        ...


class DnsTxtResolver:
    """TXT lookups through dnspython's asyncio resolver."""

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._resolver: Optional[dns.asyncresolver.Resolver] = None

    @property
    def resolver(self) -> dns.asyncresolver.Resolver:
        # resolv.conf is only read when DNS discovery is actually used
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
            self._resolver.lifetime = self.timeout_seconds
        return self._resolver

    async def resolve_txt(self, name: str) -> List[List[str]]:
        answer = await self.resolver.resolve(name, "TXT")
        return [
            [chunk.decode("utf-8") for chunk in rdata.strings]
            for rdata in answer
        ]


def _split_record(chunks: Sequence[str]) -> List[str]:
    return [name for chunk in chunks for name in chunk.split()]


class ServerResolver:
    """Works out the Eureka base URL for every operation"""

    def __init__(
        self,
        config: EurekaClientConfig,
        txt_resolver: Optional[TxtResolver] = None,
        choice: Callable[[Sequence[str]], str] = random.choice,
        logger=None,
    ):
        self.config = config
        self.txt_resolver = txt_resolver or DnsTxtResolver(
            timeout_seconds=config.eureka.request_timeout_seconds
        )
        self.choice = choice
        self.logger = (logger or structlog.get_logger()).bind(component="server_resolver")

    @property
    def uses_dns(self) -> bool:
        return self.config.instance.data_center_info.is_amazon and self.config.eureka.use_dns

    async def resolve_host(self) -> str:
        """Return the current Eureka host, performing DNS lookups when enabled."""
        if self.uses_dns:
            return await self.locate_host_using_dns()
        return self.config.eureka.host

    async def build_base_url(self) -> str:
        """Build the Eureka base URL (scheme, host, port and service path)."""
        host = await self.resolve_host()
        eureka = self.config.eureka
        scheme = "https" if eureka.ssl else "http"
        service_path = eureka.service_path.rstrip("/")
        return f"{scheme}://{host}:{eureka.port}{service_path}"

    async def locate_host_using_dns(self) -> str:
        """
        Locate a Eureka host through the TXT record naming convention.

        Raises:
            DnsResolutionError: if either lookup fails or returns nothing usable
        """
        region = self.config.eureka.ec2_region
        host = self.config.eureka.host
        if not region:
            raise DnsResolutionError(
                "EC2 region was undefined. "
                "eureka.ec2Region must be set to resolve Eureka using DNS records."
            )

        region_record = f"txt.{region}.{host}"
        try:
            records = await self.txt_resolver.resolve_txt(region_record)
        except (dns.exception.DNSException, OSError) as e:
            raise DnsResolutionError(
                f"Error resolving eureka server list for region [{region}] using DNS: [{e}]"
            ) from e

        candidates = _split_record(records[0]) if records else []
        if not candidates:
            raise DnsResolutionError(
                f"No eureka server list found for region [{region}] at {region_record}"
            )
        chosen = self.choice(candidates)

        try:
            results = await self.txt_resolver.resolve_txt(f"txt.{chosen}")
        except (dns.exception.DNSException, OSError) as e:
            raise DnsResolutionError(f"Error locating eureka server using DNS: [{e}]") from e

        servers = [name for record in results for name in _split_record(record)]
        if not servers:
            raise DnsResolutionError(f"No eureka server found at txt.{chosen}")

        self.logger.debug("eureka_server_found", zone_record=chosen, servers=servers)
        return servers[0]
