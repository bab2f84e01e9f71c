"""
Exceptions raised by the Eureka client.
"""

from typing import Optional


class EurekaClientError(Exception):
    """Base exception for Eureka client errors."""
    pass


class ConfigurationError(EurekaClientError):
    """Required configuration value missing or invalid."""
    pass


class DnsResolutionError(EurekaClientError):
    """Eureka server could not be located through DNS TXT records."""
    pass


class MetadataFetchError(EurekaClientError):
    """Cloud instance metadata could not be retrieved."""
    pass


class RegistryRequestError(EurekaClientError):
    """A call to the Eureka REST API failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RegistrationError(RegistryRequestError):
    """Instance registration was not accepted."""
    pass


class DeregistrationError(RegistryRequestError):
    """Instance deregistration was not confirmed."""
    pass


class RegistryFetchError(RegistryRequestError):
    """Registry snapshot could not be retrieved or parsed."""
    pass


class InvalidIdentifierError(EurekaClientError, ValueError):
    """Lookup called without an app id or vip address."""
    pass
