"""Service registry — the live set of backend services Aries searches.

The registry owns every :class:`ServiceRecord`.  Callers only ever receive
copies; all state changes go through the methods below, which serialize on a
single :class:`asyncio.Lock` and write through to the backing store before
touching memory.  Probes run outside the lock so a slow endpoint never stalls
readers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from aries.registry.errors import (
    DuplicateServiceError,
    IdentityValidationError,
    InvalidServiceError,
    ServiceNotFoundError,
    StoreError,
)
from aries.registry.models import ServiceRecord, ServiceStatus
from aries.registry.probe import DEFAULT_PROBE_TIMEOUT, ProbeResult, probe
from aries.registry.store import ServiceStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(name: str, url: str) -> tuple[str, str]:
    name = (name or "").strip()
    url = (url or "").strip().rstrip("/")
    if not name:
        raise InvalidServiceError("Service name is required")
    if not url:
        raise InvalidServiceError("Service url is required")
    if not url.startswith(("http://", "https://")):
        raise InvalidServiceError(f"Service url must be http(s): {url}")
    return name, url


class ServiceRegistry:
    """In-memory service records backed by a :class:`ServiceStore`.

    Args:
        store:         Durable persistence for the records.
        probe_timeout: Seconds allowed for each liveness probe.
        client:        Optional shared :class:`httpx.AsyncClient` for probes.
    """

    def __init__(
        self,
        store: ServiceStore,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._probe_timeout = probe_timeout
        self._client = client
        self._lock = asyncio.Lock()
        self._records: list[ServiceRecord] = []

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    async def list(self) -> list[ServiceRecord]:
        """Return a snapshot of every record, dead ones included."""
        async with self._lock:
            return [r.copy() for r in self._records]

    async def get(self, service_id: int) -> ServiceRecord:
        async with self._lock:
            return self._by_id(service_id).copy()

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    async def load(self) -> list[ServiceRecord]:
        """Populate the registry from the store and probe every record.

        Store errors propagate; unreachable services stay registered as dead.
        """
        records = self._store.load_all()
        logger.info("Loaded %d service(s) from store", len(records))
        results = await asyncio.gather(
            *(self._probe(r.url, r.name, validate_identity=False) for r in records)
        )
        checked = _now()
        async with self._lock:
            self._records = []
            for record, result in zip(records, results):
                record.status = ServiceStatus.ALIVE if result.alive else ServiceStatus.DEAD
                record.last_checked = checked
                self._store.update(record)
                self._records.append(record)
                if result.alive:
                    logger.info("   * %s is alive", record.name)
                else:
                    logger.warning("   * %s is not available: %s", record.name, result.detail)
            return [r.copy() for r in self._records]

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def add(self, name: str, url: str) -> ServiceRecord:
        """Register a new service after it proves liveness and identity.

        Raises:
            InvalidServiceError:     empty name or non-http url.
            DuplicateServiceError:   *name* is already registered.
            IdentityValidationError: the probe failed.
            StoreError:              the record could not be persisted.
        """
        name, url = _clean(name, url)
        async with self._lock:
            self._ensure_name_free(name)

        result = await self._probe(url, name, validate_identity=True)
        if not result.alive:
            raise IdentityValidationError(
                f"Service {name} at {url} failed validation: {result.detail}"
            )

        async with self._lock:
            # the name may have been taken while the probe was in flight
            self._ensure_name_free(name)
            record = ServiceRecord(
                name=name, url=url, status=ServiceStatus.ALIVE, last_checked=_now()
            )
            record.id = self._store.insert(record)
            self._records.append(record)
            logger.info("Added service %s (id=%d) at %s", name, record.id, url)
            return record.copy()

    async def update(self, service_id: int, name: str, url: str) -> ServiceRecord:
        """Rename and/or re-address an existing service.

        The endpoint is re-probed with identity validation only when the url
        changes.

        Raises:
            ServiceNotFoundError:    no record with *service_id*.
            DuplicateServiceError:   *name* belongs to another record.
            IdentityValidationError: the new url failed its probe.
            StoreError:              the change could not be persisted.
        """
        name, url = _clean(name, url)
        async with self._lock:
            current = self._by_id(service_id)
            self._ensure_name_free(name, ignore_id=service_id)
            url_changed = current.url != url

        result: ProbeResult | None = None
        if url_changed:
            result = await self._probe(url, name, validate_identity=True)
            if not result.alive:
                raise IdentityValidationError(
                    f"Service {name} at {url} failed validation: {result.detail}"
                )

        async with self._lock:
            current = self._by_id(service_id)
            self._ensure_name_free(name, ignore_id=service_id)
            updated = current.copy()
            updated.name = name
            updated.url = url
            if result is not None:
                updated.status = ServiceStatus.ALIVE
                updated.last_checked = _now()
            self._store.update(updated)
            self._replace(updated)
            logger.info("Updated service id=%d: %s at %s", service_id, name, url)
            return updated.copy()

    async def mark_dead(self, name: str) -> bool:
        """Demote a service after a failed lookup call.

        Returns ``True`` when the record changed state.  Unknown names and
        records that are already dead are left alone.
        """
        async with self._lock:
            current = self._by_name(name)
            if current is None or current.status is ServiceStatus.DEAD:
                return False
            updated = current.copy()
            updated.status = ServiceStatus.DEAD
            updated.last_checked = _now()
            self._store.update(updated)
            self._replace(updated)
        logger.warning("Service %s marked dead", name)
        return True

    async def heartbeat_sweep(self) -> dict[str, bool]:
        """Re-probe every record and persist the outcome.

        Individual probe or store failures are logged; the sweep always
        visits every record.

        Returns:
            ``{name: alive}`` for every record probed.
        """
        snapshot = await self.list()
        results = await asyncio.gather(
            *(self._probe(r.url, r.name, validate_identity=False) for r in snapshot),
            return_exceptions=True,
        )
        checked = _now()
        outcome: dict[str, bool] = {}
        async with self._lock:
            for before, result in zip(snapshot, results):
                if isinstance(result, BaseException):
                    logger.error("Probe of %s raised: %s", before.name, result)
                    alive = False
                else:
                    alive = result.alive
                current = self._find_id(before.id)
                if current is None or current.url != before.url:
                    # updated while the probe was in flight; its own probe wins
                    continue
                outcome[current.name] = alive
                updated = current.copy()
                updated.status = ServiceStatus.ALIVE if alive else ServiceStatus.DEAD
                updated.last_checked = checked
                try:
                    self._store.update(updated)
                except StoreError as exc:
                    logger.error("Unable to persist status of %s: %s", updated.name, exc)
                    continue
                self._replace(updated)

        if outcome and all(outcome.values()):
            logger.info("   * All services online")
        return outcome

    # ------------------------------------------------------------------ #
    # Helpers (callers must hold the lock)                                 #
    # ------------------------------------------------------------------ #

    async def _probe(self, url: str, name: str, validate_identity: bool) -> ProbeResult:
        return await probe(
            url,
            name,
            validate_identity=validate_identity,
            timeout=self._probe_timeout,
            client=self._client,
        )

    def _find_id(self, service_id: int | None) -> ServiceRecord | None:
        for record in self._records:
            if record.id == service_id:
                return record
        return None

    def _by_id(self, service_id: int) -> ServiceRecord:
        record = self._find_id(service_id)
        if record is None:
            raise ServiceNotFoundError(f"Service id {service_id} not found")
        return record

    def _by_name(self, name: str) -> ServiceRecord | None:
        for record in self._records:
            if record.name == name:
                return record
        return None

    def _ensure_name_free(self, name: str, ignore_id: int | None = None) -> None:
        existing = self._by_name(name)
        if existing is not None and existing.id != ignore_id:
            raise DuplicateServiceError(f"Service {name} already exists")

    def _replace(self, record: ServiceRecord) -> None:
        for idx, existing in enumerate(self._records):
            if existing.id == record.id:
                self._records[idx] = record
                return
