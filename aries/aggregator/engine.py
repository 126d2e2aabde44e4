"""Fan-out / fan-in engine behind ``GET /api/resources/{identifier}``.

Every alive service gets one concurrent lookup; dead services are answered
immediately without touching the network.  Results are merged through a
queue in the order they arrive, so ``responses`` never lines up with the
registry listing.  The merge is bounded by ``lookup_timeout + merge_slack``:
any call still outstanding at that point is cancelled and reported as timed
out, so every registered service always yields exactly one result.
"""

from __future__ import annotations

import asyncio
import logging
import time

from aries.aggregator.client import DEFAULT_LOOKUP_TIMEOUT, DownstreamClient
from aries.aggregator.models import (
    MSG_OFFLINE,
    MSG_TIMEOUT,
    STATUS_TIMEOUT,
    STATUS_UNAVAILABLE,
    AggregateReport,
    LookupResult,
)
from aries.registry.errors import StoreError
from aries.registry.models import ServiceRecord
from aries.registry.service import ServiceRegistry

logger = logging.getLogger(__name__)

DEFAULT_MERGE_SLACK = 2.0
STATUS_INTERNAL_ERROR = 500


class Aggregator:
    """Searches every registered service for one identifier.

    Args:
        registry:       Source of the service snapshot and target of
                        ``mark_dead`` demotions.
        client:         Downstream client; one is built from
                        *lookup_timeout* when omitted.
        lookup_timeout: Per-call timeout in seconds.
        merge_slack:    Extra seconds the merge waits beyond the per-call
                        timeout before giving up on outstanding calls.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        client: DownstreamClient | None = None,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        merge_slack: float = DEFAULT_MERGE_SLACK,
    ) -> None:
        self.registry = registry
        self.client = client or DownstreamClient(timeout=lookup_timeout)
        self.lookup_timeout = lookup_timeout
        self.merge_slack = merge_slack

    async def aggregate(self, identifier: str) -> AggregateReport:
        start = time.monotonic()
        services = await self.registry.list()
        report = AggregateReport(systems_searched=len(services))
        queue: asyncio.Queue[LookupResult] = asyncio.Queue()
        outstanding: dict[str, asyncio.Task] = {}

        for svc in services:
            if not svc.alive:
                logger.info("Service %s is currently not active", svc.name)
                report.add(LookupResult(
                    system=svc.name,
                    status=STATUS_UNAVAILABLE,
                    response=MSG_OFFLINE,
                    response_time_ms=0,
                ))
                continue
            logger.info("Check %s : %s for identifier %s", svc.name, svc.url, identifier)
            outstanding[svc.name] = asyncio.create_task(
                self._lookup(svc, identifier, queue)
            )

        await self._merge(report, queue, outstanding)
        report.total_response_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Identifier %s: %d hit(s) from %d system(s) in %dms",
            identifier, report.hits, report.systems_searched, report.total_response_time_ms,
        )
        return report

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    async def _merge(
        self,
        report: AggregateReport,
        queue: asyncio.Queue[LookupResult],
        outstanding: dict[str, asyncio.Task],
    ) -> None:
        loop = asyncio.get_running_loop()
        budget = self.lookup_timeout + self.merge_slack
        deadline = loop.time() + budget
        while outstanding:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                result = await asyncio.wait_for(queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            outstanding.pop(result.system, None)
            report.add(result)

        # results queued while the loop was busy still count as finished
        while outstanding:
            try:
                result = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            outstanding.pop(result.system, None)
            report.add(result)

        for task in outstanding.values():
            task.cancel()
        if outstanding:
            await asyncio.gather(*outstanding.values(), return_exceptions=True)

        for name in outstanding:
            logger.error("Lookup against %s did not finish within %.1fs", name, budget)
            await self._demote(name)
            report.add(LookupResult(
                system=name,
                status=STATUS_TIMEOUT,
                response=MSG_TIMEOUT,
                response_time_ms=int(budget * 1000),
                transport_error=True,
            ))

    async def _lookup(
        self,
        svc: ServiceRecord,
        identifier: str,
        queue: asyncio.Queue[LookupResult],
    ) -> None:
        try:
            result = await self.client.call(svc, identifier)
        except Exception as exc:
            logger.exception("Lookup against %s raised", svc.name)
            result = LookupResult(
                system=svc.name,
                status=STATUS_INTERNAL_ERROR,
                response=str(exc) or exc.__class__.__name__,
                response_time_ms=0,
            )
        if result.transport_error:
            await self._demote(svc.name)
        await queue.put(result)

    async def _demote(self, name: str) -> None:
        try:
            await self.registry.mark_dead(name)
        except StoreError as exc:
            logger.error("Unable to mark %s dead: %s", name, exc)
