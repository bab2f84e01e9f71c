"""
Local cache of the Eureka registry.

Each successful fetch builds a fresh RegistryIndex and publishes it with a
single assignment, so lookups see either the previous snapshot or the new one.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog
from opentelemetry import trace
from pydantic import ValidationError

from .exceptions import EurekaClientError, InvalidIdentifierError, RegistryFetchError
from .metrics import cached_applications, registry_call_duration, registry_calls
from .models import PeerInstance, RegistryIndex
from .resolver import ServerResolver

tracer = trace.get_tracer(__name__)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    return [value]


def transform_app(
    app: Dict[str, Any],
    app_index: Dict[str, Tuple[PeerInstance, ...]],
    vip_index: Dict[str, Tuple[PeerInstance, ...]],
) -> None:
    """
    Add one application entry to the indexes being built.

    A single instance object and a one-element list produce the same tuple.
    The vip index uses the first instance's vipAddress for the whole
    application, even when sibling instances declare other addresses.
    """
    instances = tuple(PeerInstance.model_validate(i) for i in _as_list(app["instance"]))
    app_index[app["name"].upper()] = instances
    if instances and instances[0].vip_address:
        # FIXME: confirm with registry owners whether one vip per application is intended
        vip_index[instances[0].vip_address] = instances


def transform_registry(registry: Any) -> RegistryIndex:
    """
    Build a RegistryIndex from a decoded ``GET /apps`` payload.

    Raises:
        RegistryFetchError: if the payload is empty or not shaped like a registry
    """
    if not registry:
        raise RegistryFetchError("Unable to transform empty registry")

    try:
        applications = registry["applications"]["application"]
    except (KeyError, TypeError) as e:
        raise RegistryFetchError(f"Registry payload has no applications: {e}") from e
    if applications is None:
        raise RegistryFetchError("Registry payload has no applications")

    app_index: Dict[str, Tuple[PeerInstance, ...]] = {}
    vip_index: Dict[str, Tuple[PeerInstance, ...]] = {}
    try:
        for app in _as_list(applications):
            transform_app(app, app_index, vip_index)
    except (KeyError, TypeError, AttributeError, ValidationError) as e:
        raise RegistryFetchError(f"Malformed application entry in registry: {e}") from e

    return RegistryIndex(
        apps=app_index,
        vips=vip_index,
        fetched_at=datetime.now(timezone.utc),
    )


class RegistryCache:
    """Fetches the registry and serves peer lookups from the last good snapshot."""

    def __init__(
        self,
        resolver: ServerResolver,
        http_client: httpx.AsyncClient,
        logger=None,
    ):
        self.resolver = resolver
        self.http_client = http_client
        self.logger = (logger or structlog.get_logger()).bind(component="registry_cache")
        self._index = RegistryIndex()

    @property
    def index(self) -> RegistryIndex:
        return self._index

    async def fetch_registry(self) -> RegistryIndex:
        """
        Retrieve every application registered with Eureka and replace the cache.

        Returns:
            The newly published index

        Raises:
            RegistryFetchError: the previous index is kept unchanged
        """
        with tracer.start_as_current_span("eureka.fetch_registry"), \
                registry_call_duration.labels(operation="fetch_registry").time():
            try:
                base_url = await self.resolver.build_base_url()
                response = await self.http_client.get(
                    base_url,
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                registry_calls.labels(operation="fetch_registry", status="error").inc()
                self.logger.error("registry_fetch_failed", error=str(e))
                raise RegistryFetchError(f"Unable to retrieve registry from Eureka server: {e}") from e

        if response.status_code != 200:
            registry_calls.labels(operation="fetch_registry", status="error").inc()
            self.logger.error(
                "registry_fetch_failed",
                status_code=response.status_code,
                body=response.text,
            )
            raise RegistryFetchError(
                "Unable to retrieve registry from Eureka server",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            registry_calls.labels(operation="fetch_registry", status="error").inc()
            self.logger.error("registry_payload_invalid", error=str(e))
            raise RegistryFetchError(
                f"Registry response is not valid JSON: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        try:
            new_index = transform_registry(payload)
        except RegistryFetchError as e:
            registry_calls.labels(operation="fetch_registry", status="error").inc()
            self.logger.warning("registry_transform_failed", error=str(e))
            raise

        self._index = new_index

        registry_calls.labels(operation="fetch_registry", status="success").inc()
        cached_applications.set(len(new_index))
        self.logger.debug("registry_fetched", applications=len(new_index))
        return new_index

    async def refresh(self) -> None:
        """Background variant of fetch_registry: failures are only logged."""
        try:
            await self.fetch_registry()
        except EurekaClientError as e:
            self.logger.warning("registry_refresh_failed_keeping_cache", error=str(e))

    def get_instances_by_app_id(self, app_id: Optional[str]) -> List[PeerInstance]:
        """
        Instances registered under ``app_id`` (case-insensitive).

        Raises:
            InvalidIdentifierError: if app_id is empty
        """
        if not app_id:
            raise InvalidIdentifierError("Unable to query instances with no appId")

        instances = self._index.apps.get(app_id.upper())
        if not instances:
            self.logger.warning("instances_not_found_for_app_id", app_id=app_id)
            return []
        return list(instances)

    def get_instances_by_vip_address(self, vip_address: Optional[str]) -> List[PeerInstance]:
        """
        Instances registered under ``vip_address`` (exact match).

        Raises:
            InvalidIdentifierError: if vip_address is empty
        """
        if not vip_address:
            raise InvalidIdentifierError("Unable to query instances with no vipAddress")

        instances = self._index.vips.get(vip_address)
        if not instances:
            self.logger.warning("instances_not_found_for_vip_address", vip_address=vip_address)
            return []
        return list(instances)
