"""
Registration lifecycle of the local instance: register, renew, deregister.
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx
import structlog
from opentelemetry import trace

from .config import EurekaClientConfig
from .exceptions import DeregistrationError, EurekaClientError, RegistrationError
from .metrics import heartbeats_total, registry_call_duration, registry_calls
from .models import InstanceRecord, InstanceStatus
from .resolver import ServerResolver

tracer = trace.get_tracer(__name__)

JSON_HEADERS = {"Accept": "application/json"}


class RegistrationState(str, Enum):
    UNREGISTERED = "UNREGISTERED"
    REGISTERING = "REGISTERING"
    REGISTERED = "REGISTERED"
    DEREGISTERED = "DEREGISTERED"


class RegistrationManager:
    """
    Keeps the instance registered with Eureka.

    ``register`` and ``deregister`` raise on failure so the caller of
    ``start``/``stop`` sees it. ``renew`` never raises: failures are logged and
    the next heartbeat tries again, except for a 404 which re-registers.
    """

    def __init__(
        self,
        config: EurekaClientConfig,
        instance: InstanceRecord,
        resolver: ServerResolver,
        http_client: httpx.AsyncClient,
        logger=None,
    ):
        self.config = config
        self.instance = instance
        self.resolver = resolver
        self.http_client = http_client
        self.logger = (logger or structlog.get_logger()).bind(component="registration_manager")
        self.state = RegistrationState.UNREGISTERED

    @property
    def instance_id(self) -> Optional[str]:
        """
        Instance id used in renew/deregister URLs.

        Configured instanceId first, then the EC2 instance-id for Amazon
        datacenters, then the hostname.
        """
        if self.instance.instance_id:
            return self.instance.instance_id
        if self.instance.data_center_info.is_amazon:
            return self.instance.data_center_info.metadata.get("instance-id")
        return self.instance.host_name

    @property
    def registration_key(self) -> str:
        return f"{self.instance.app}/{self.instance_id}"

    def _warn_slow_registration(self) -> None:
        self.logger.warning(
            "eureka_registration_slow",
            message=(
                "It looks like it's taking a while to register with Eureka. "
                "This usually means there is an issue connecting to the host specified."
            ),
            eureka_host=self.config.eureka.host,
        )

    async def register(self) -> None:
        """
        Register the instance (status UP) with Eureka.

        Raises:
            RegistrationError: on transport failure or any status other than 204
        """
        self.instance.status = InstanceStatus.UP
        self.state = RegistrationState.REGISTERING

        loop = asyncio.get_running_loop()
        slow_warning = loop.call_later(
            self.config.eureka.registration_warning_seconds,
            self._warn_slow_registration,
        )

        with tracer.start_as_current_span("eureka.register"), \
                registry_call_duration.labels(operation="register").time():
            try:
                base_url = await self.resolver.build_base_url()
                response = await self.http_client.post(
                    f"{base_url}/{self.instance.app}",
                    json={"instance": self.instance.to_wire()},
                    headers=JSON_HEADERS,
                )
            except httpx.HTTPError as e:
                registry_calls.labels(operation="register", status="error").inc()
                self.logger.error("eureka_registration_failed", error=str(e))
                raise RegistrationError(f"eureka registration FAILED: {e}") from e
            finally:
                slow_warning.cancel()

        if response.status_code != 204:
            registry_calls.labels(operation="register", status="error").inc()
            self.logger.error(
                "eureka_registration_failed",
                status_code=response.status_code,
                body=response.text,
            )
            raise RegistrationError(
                f"eureka registration FAILED: status: {response.status_code} body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        registry_calls.labels(operation="register", status="success").inc()
        self.state = RegistrationState.REGISTERED
        self.logger.info("registered_with_eureka", registration=self.registration_key)

    async def renew(self) -> bool:
        """
        Send one heartbeat. Returns True when Eureka acknowledged it.

        A 404 means Eureka dropped the registration; the instance registers
        again before this call returns.
        """
        with tracer.start_as_current_span("eureka.renew"), \
                registry_call_duration.labels(operation="renew").time():
            try:
                base_url = await self.resolver.build_base_url()
                response = await self.http_client.put(
                    f"{base_url}/{self.registration_key}",
                    headers=JSON_HEADERS,
                )
            except (httpx.HTTPError, EurekaClientError) as e:
                registry_calls.labels(operation="renew", status="error").inc()
                heartbeats_total.labels(result="error").inc()
                self.logger.warning("eureka_heartbeat_failed_will_retry", status="unknown", error=str(e))
                return False

        if response.status_code == 200:
            registry_calls.labels(operation="renew", status="success").inc()
            heartbeats_total.labels(result="success").inc()
            self.logger.debug("eureka_heartbeat_success")
            return True

        registry_calls.labels(operation="renew", status="error").inc()

        if response.status_code == 404:
            heartbeats_total.labels(result="not_found").inc()
            self.logger.warning("eureka_heartbeat_failed_reregistering", registration=self.registration_key)
            self.state = RegistrationState.REGISTERING
            try:
                await self.register()
            except EurekaClientError as e:
                # Next heartbeat tries again
                self.logger.error("eureka_reregistration_failed", error=str(e))
            return False

        heartbeats_total.labels(result="error").inc()
        self.logger.warning(
            "eureka_heartbeat_failed_will_retry",
            status=response.status_code,
            body=response.text,
        )
        return False

    async def deregister(self) -> None:
        """
        Remove the registration from Eureka.

        Raises:
            DeregistrationError: on transport failure or any status other than 200
        """
        with tracer.start_as_current_span("eureka.deregister"), \
                registry_call_duration.labels(operation="deregister").time():
            try:
                base_url = await self.resolver.build_base_url()
                response = await self.http_client.delete(
                    f"{base_url}/{self.registration_key}",
                    headers=JSON_HEADERS,
                )
            except httpx.HTTPError as e:
                registry_calls.labels(operation="deregister", status="error").inc()
                self.logger.error("eureka_deregistration_failed", error=str(e))
                raise DeregistrationError(f"eureka deregistration FAILED: {e}") from e

        if response.status_code != 200:
            registry_calls.labels(operation="deregister", status="error").inc()
            self.logger.error(
                "eureka_deregistration_failed",
                status_code=response.status_code,
                body=response.text,
            )
            raise DeregistrationError(
                f"eureka deregistration FAILED: status: {response.status_code} body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        registry_calls.labels(operation="deregister", status="success").inc()
        self.state = RegistrationState.DEREGISTERED
        self.logger.info("deregistered_with_eureka", registration=self.registration_key)
