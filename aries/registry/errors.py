"""Exceptions raised by the service registry and its backing stores."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for every registry failure reported to a caller."""


class InvalidServiceError(RegistryError):
    """The submitted name or url is missing or malformed."""


class DuplicateServiceError(RegistryError):
    """A service with the requested name is already registered."""


class ServiceNotFoundError(RegistryError):
    """No service is registered under the requested id."""


class IdentityValidationError(RegistryError):
    """The endpoint did not prove it is alive and is the named service."""


class StoreError(RegistryError):
    """The backing store could not load or persist a record."""
