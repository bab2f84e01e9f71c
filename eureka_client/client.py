"""
Eureka client - registers the instance, keeps it alive and caches the registry.

Startup runs as an ordered pipeline (metadata -> register -> loops); the first
failing stage stops the pipeline and its error reaches the caller.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

import httpx
import structlog

from .config import EurekaClientConfig, validate_config
from .metadata import AwsMetadataClient, MetadataProvider
from .models import InstanceRecord, LifecycleResult, LifecycleStep, PeerInstance, RegistryIndex
from .registration import RegistrationManager, RegistrationState
from .registry_cache import RegistryCache
from .resolver import ServerResolver, TxtResolver
from .scheduler import BackgroundLoops, RecurringTask


@dataclass
class Stage:
    """One startup stage; disabled stages are recorded as skipped."""
    name: str
    action: Callable[[], Awaitable[object]]
    enabled: bool = True


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


async def run_stages(
    stages: List[Stage],
    logger,
) -> Tuple[LifecycleResult, Optional[Exception]]:
    """
    Run stages in order, stopping at the first failure.

    Returns the execution record and the exception that stopped it, if any.
    """
    start_time = datetime.now(timezone.utc)
    steps: List[LifecycleStep] = []

    for stage in stages:
        if not stage.enabled:
            steps.append(LifecycleStep(step_name=stage.name, status="skipped"))
            logger.debug("startup_stage_skipped", stage=stage.name)
            continue

        step_start = datetime.now(timezone.utc)
        try:
            await stage.action()
        except Exception as e:
            step_end = datetime.now(timezone.utc)
            steps.append(LifecycleStep(
                step_name=stage.name,
                status="failed",
                started_at=step_start,
                completed_at=step_end,
                duration_ms=_elapsed_ms(step_start, step_end),
                error=str(e),
            ))
            logger.error("startup_stage_failed", stage=stage.name, error=str(e))
            return LifecycleResult(
                success=False,
                steps=steps,
                total_duration_ms=_elapsed_ms(start_time, step_end),
                error=str(e),
            ), e

        step_end = datetime.now(timezone.utc)
        steps.append(LifecycleStep(
            step_name=stage.name,
            status="completed",
            started_at=step_start,
            completed_at=step_end,
            duration_ms=_elapsed_ms(step_start, step_end),
        ))

    return LifecycleResult(
        success=True,
        steps=steps,
        total_duration_ms=_elapsed_ms(start_time, datetime.now(timezone.utc)),
    ), None


class EurekaClient:
    """Client for a Eureka service registry."""

    def __init__(
        self,
        config: EurekaClientConfig,
        metadata_provider: Optional[MetadataProvider] = None,
        txt_resolver: Optional[TxtResolver] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger=None,
    ):
        """
        Initialize the Eureka client.

        Args:
            config: Fully assembled configuration (see ``load_config``)
            metadata_provider: Cloud metadata source; an AwsMetadataClient is
                used for Amazon datacenters when omitted
            txt_resolver: DNS TXT resolver used for DNS-based discovery
            http_client: Shared HTTP client (one is created and owned otherwise)
            logger: structlog logger to use instead of the module default

        Raises:
            ConfigurationError: if a required configuration value is missing
        """
        validate_config(config)

        self.config = config
        self.logger = (logger or structlog.get_logger()).bind(service="eureka_client")
        self.logger.debug("initializing_eureka_client", app=config.instance.app)

        self.instance: InstanceRecord = config.instance.model_copy(deep=True)

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.eureka.request_timeout_seconds
        )

        if metadata_provider is None and self.amazon_data_center:
            metadata_provider = AwsMetadataClient(http_client=self.http_client, logger=logger)
        self.metadata_provider = metadata_provider

        self.resolver = ServerResolver(config, txt_resolver=txt_resolver, logger=logger)
        self.registration = RegistrationManager(
            config, self.instance, self.resolver, self.http_client, logger=logger
        )
        self.registry_cache = RegistryCache(self.resolver, self.http_client, logger=logger)

        self.loops = BackgroundLoops(
            heartbeat=RecurringTask(
                "heartbeat",
                self.registration.renew,
                config.eureka.heartbeat_interval_seconds,
                logger=logger,
            ),
            registry_fetch=RecurringTask(
                "registry-fetch",
                self.registry_cache.refresh,
                config.eureka.registry_fetch_interval_seconds,
                logger=logger,
            ),
        )
        self.last_startup: Optional[LifecycleResult] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self.stop()
        finally:
            await self.close()

    @property
    def amazon_data_center(self) -> bool:
        return self.instance.data_center_info.is_amazon

    @property
    def instance_id(self) -> Optional[str]:
        return self.registration.instance_id

    @property
    def registration_state(self) -> RegistrationState:
        return self.registration.state

    @property
    def registry(self) -> RegistryIndex:
        return self.registry_cache.index

    async def start(self) -> LifecycleResult:
        """
        Register with Eureka, start heartbeats and (optionally) registry fetches.

        Returns:
            Record of the executed stages

        Raises:
            Exception: whatever the first failing stage raised
        """
        fetch_registry = self.config.eureka.fetch_registry
        stages = [
            Stage(
                "metadata",
                self.add_instance_metadata,
                enabled=self.metadata_provider is not None
                and self.amazon_data_center
                and self.config.eureka.fetch_metadata,
            ),
            Stage("register", self.registration.register),
            Stage("loops", self._start_loops),
        ]

        self.logger.info("starting_eureka_client", fetch_registry=fetch_registry)
        result, error = await run_stages(stages, self.logger)
        self.last_startup = result
        if error is not None:
            raise error

        self.logger.info("eureka_client_started", duration_ms=result.total_duration_ms)
        return result

    async def stop(self) -> None:
        """
        Stop the background loops and deregister.

        Timers are halted before anything is awaited, so no heartbeat fires
        once the DELETE is issued. A heartbeat or fetch already in flight is
        allowed to finish before deregistration.

        Raises:
            DeregistrationError: if Eureka rejects or never receives the DELETE
        """
        self.loops.halt()
        try:
            await self.loops.join()
            await self.registration.deregister()
        finally:
            self.logger.info("eureka_client_stopped")

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http_client:
            await self.http_client.aclose()

    async def add_instance_metadata(self) -> None:
        """
        Fetch cloud metadata and merge it into the instance record.

        Public hostname and IP replace hostName/ipAddr, and the ``__HOST__``
        placeholder in statusPageUrl/healthCheckUrl becomes the public
        hostname.
        """
        metadata = await self.metadata_provider.fetch_metadata()
        self.instance.apply_metadata(metadata)
        self.logger.info(
            "instance_metadata_applied",
            host_name=self.instance.host_name,
            ip_addr=self.instance.ip_addr,
        )

    async def _start_loops(self) -> None:
        fetch_registry = self.config.eureka.fetch_registry
        self.loops.start(fetch_registry=fetch_registry)
        if fetch_registry:
            await self.registry_cache.fetch_registry()

    async def register(self) -> None:
        await self.registration.register()

    async def renew(self) -> bool:
        return await self.registration.renew()

    async def deregister(self) -> None:
        await self.registration.deregister()

    async def fetch_registry(self) -> RegistryIndex:
        return await self.registry_cache.fetch_registry()

    def get_instances_by_app_id(self, app_id: Optional[str]) -> List[PeerInstance]:
        return self.registry_cache.get_instances_by_app_id(app_id)

    def get_instances_by_vip_address(self, vip_address: Optional[str]) -> List[PeerInstance]:
        return self.registry_cache.get_instances_by_vip_address(vip_address)
