"""Downstream client — one identifier lookup against one service.

Calls ``GET <url>/aries/<identifier>`` and folds every outcome, including
transport failures, into a :class:`LookupResult`.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import quote

import httpx

from aries.aggregator.models import (
    MSG_OFFLINE,
    MSG_TIMEOUT,
    STATUS_BAD_REQUEST,
    STATUS_OK,
    STATUS_TIMEOUT,
    STATUS_UNAVAILABLE,
    LookupResult,
)
from aries.registry.models import ServiceRecord
from aries.registry.probe import LIVENESS_SUFFIX

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 10.0


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _is_refused(exc: BaseException) -> bool:
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, ConnectionRefusedError):
            return True
        if "refused" in str(seen).lower():
            return True
        seen = seen.__cause__ or seen.__context__
    return False


class DownstreamClient:
    """Issues lookups through a shared :class:`httpx.AsyncClient`.

    Args:
        timeout: Per-call timeout in seconds.
        client:  Optional pre-built client (tests pass one with a mock
                 transport).  A client passed in is not closed by
                 :meth:`aclose`.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def lookup_url(self, record: ServiceRecord, identifier: str) -> str:
        return f"{record.url.rstrip('/')}/{LIVENESS_SUFFIX}/{quote(identifier, safe='')}"

    async def call(self, record: ServiceRecord, identifier: str) -> LookupResult:
        url = self.lookup_url(record, identifier)
        start = time.monotonic()
        try:
            resp = await self._client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            logger.warning("GET %s timed out: %s", url, exc)
            return self._failure(record, STATUS_TIMEOUT, MSG_TIMEOUT, start)
        except httpx.ConnectError as exc:
            logger.warning("GET %s failed: %s", url, exc)
            if _is_refused(exc):
                return self._failure(record, STATUS_UNAVAILABLE, MSG_OFFLINE, start)
            return self._failure(record, STATUS_BAD_REQUEST, str(exc), start)
        except httpx.HTTPError as exc:
            logger.warning("GET %s failed: %s", url, exc)
            return self._failure(
                record, STATUS_BAD_REQUEST, str(exc) or exc.__class__.__name__, start
            )

        elapsed = _elapsed_ms(start)
        if resp.status_code != STATUS_OK:
            logger.info("%s answered %d for %s", record.name, resp.status_code, url)
            return LookupResult(
                system=record.name,
                status=resp.status_code,
                response=resp.text,
                response_time_ms=elapsed,
            )

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("%s returned a non-JSON body for %s", record.name, url)
            payload = resp.text
        return LookupResult(
            system=record.name,
            status=resp.status_code,
            response=payload,
            response_time_ms=elapsed,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _failure(record: ServiceRecord, status: int, message: str, start: float) -> LookupResult:
        return LookupResult(
            system=record.name,
            status=status,
            response=message,
            response_time_ms=_elapsed_ms(start),
            transport_error=True,
        )
