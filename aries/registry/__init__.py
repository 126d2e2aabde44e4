"""aries.registry — the set of backend services Aries searches.

Exports:
    ServiceRecord       — dataclass for one registered service
    ServiceStatus       — unknown / alive / dead
    ServiceRegistry     — lock-guarded registry with write-through persistence
    HeartbeatScheduler  — periodic background re-probe
    ServiceStore        — persistence interface
    SQLiteServiceStore  — ``services`` table implementation
    CSVServiceStore     — ``services.csv`` implementation
    probe               — single liveness / identity check
"""

from __future__ import annotations

from aries.registry.errors import (
    DuplicateServiceError,
    IdentityValidationError,
    InvalidServiceError,
    RegistryError,
    ServiceNotFoundError,
    StoreError,
)
from aries.registry.heartbeat import HeartbeatScheduler
from aries.registry.models import ServiceRecord, ServiceStatus
from aries.registry.probe import ProbeResult, probe
from aries.registry.service import ServiceRegistry
from aries.registry.store import CSVServiceStore, ServiceStore, SQLiteServiceStore

__all__ = [
    "CSVServiceStore",
    "DuplicateServiceError",
    "HeartbeatScheduler",
    "IdentityValidationError",
    "InvalidServiceError",
    "ProbeResult",
    "RegistryError",
    "SQLiteServiceStore",
    "ServiceNotFoundError",
    "ServiceRecord",
    "ServiceRegistry",
    "ServiceStatus",
    "ServiceStore",
    "StoreError",
    "probe",
]
