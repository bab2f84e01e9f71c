"""Shared test fixtures for eureka_client tests."""

import asyncio
import json
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import httpx
import pytest
import structlog

from eureka_client.config import EurekaClientConfig


@pytest.fixture(autouse=True)
def mock_structlog(monkeypatch):
    """Mock structlog to capture log calls without side effects."""
    mock_logger = MagicMock()
    mock_logger.bind.return_value = mock_logger
    monkeypatch.setattr(structlog, 'get_logger', lambda *args, **kwargs: mock_logger)
    return mock_logger


def make_config(
    instance: Optional[Dict[str, Any]] = None,
    eureka: Optional[Dict[str, Any]] = None,
) -> EurekaClientConfig:
    """Build a valid config, applying overrides on top of sane defaults."""
    instance_data = {
        'app': 'orders',
        'vipAddress': 'orders.vip',
        'port': 8080,
        'hostName': 'orders-1.local',
        'ipAddr': '10.0.0.5',
        'dataCenterInfo': {'name': 'MyOwn', 'metadata': {}},
    }
    instance_data.update(instance or {})
    eureka_data = {
        'host': 'eureka.local',
        'port': 8761,
        'servicePath': '/eureka/v2/apps/',
        'heartbeat_interval_seconds': 30,
        'registry_fetch_interval_seconds': 30,
    }
    eureka_data.update(eureka or {})
    return EurekaClientConfig.model_validate({'instance': instance_data, 'eureka': eureka_data})


class MockEurekaServer:
    """Mock Eureka REST API served through httpx.MockTransport."""

    APPS_PATH = '/eureka/v2/apps'

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.register_status = 204
        self.renew_status = 200
        self.deregister_status = 200
        self.registry_status = 200
        self.registry_payload: Any = {'applications': {'application': []}}
        self.registry_body: Optional[bytes] = None
        self.error_body = 'server says no'
        self.fetch_gate: Optional[asyncio.Event] = None
        self.register_delay: float = 0.0
        self.renew_delay: float = 0.0
        self.deregister_delay: float = 0.0
        # When set, PUT answers 404 unless the instance is currently registered
        self.track_registration = False
        self.registered = False
        self.events: List[str] = []

    def requests_for(self, method: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def _error(self, status_code: int) -> httpx.Response:
        return httpx.Response(status_code=status_code, content=self.error_body.encode())

    async def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Handle an incoming request and return a mock response."""
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if method == 'GET' and path == self.APPS_PATH:
            if self.fetch_gate is not None:
                await self.fetch_gate.wait()
            if self.registry_status != 200:
                return self._error(self.registry_status)
            content = self.registry_body if self.registry_body is not None else json.dumps(self.registry_payload).encode()
            return httpx.Response(200, content=content, headers={'content-type': 'application/json'})

        if method == 'POST' and path.startswith(self.APPS_PATH + '/'):
            if self.register_delay:
                await asyncio.sleep(self.register_delay)
            if self.register_status != 204:
                return self._error(self.register_status)
            self.registered = True
            self.events.append('POST')
            return httpx.Response(204)

        if method == 'PUT' and path.startswith(self.APPS_PATH + '/'):
            self.events.append('PUT-start')
            if self.renew_delay:
                await asyncio.sleep(self.renew_delay)
            self.events.append('PUT-done')
            if self.track_registration and not self.registered:
                return self._error(404)
            if self.renew_status != 200:
                return self._error(self.renew_status)
            return httpx.Response(200)

        if method == 'DELETE' and path.startswith(self.APPS_PATH + '/'):
            self.events.append('DELETE')
            if self.deregister_status != 200:
                return self._error(self.deregister_status)
            self.registered = False
            if self.deregister_delay:
                await asyncio.sleep(self.deregister_delay)
            return httpx.Response(200)

        return httpx.Response(status_code=404, content=b'{"error": "Not found"}')

    def get_client(self, **kwargs) -> httpx.AsyncClient:
        """Get an async client configured to use this mock server."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle_request), **kwargs)


@pytest.fixture
def eureka_server():
    return MockEurekaServer()


@pytest.fixture
def http_client(eureka_server):
    return eureka_server.get_client()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def orders_payload():
    """Registry with one multi-instance app and one single-instance app."""
    return {
        'applications': {
            'application': [
                {
                    'name': 'ORDERS',
                    'instance': [
                        {'vipAddress': 'orders.vip', 'instanceId': 'i-1', 'hostName': 'orders-1'},
                        {'vipAddress': 'orders.vip', 'instanceId': 'i-2', 'hostName': 'orders-2'},
                    ],
                },
                {
                    'name': 'billing',
                    'instance': {'vipAddress': 'billing.vip', 'instanceId': 'b-1'},
                },
            ]
        }
    }
