"""Liveness and identity probe for registered services.

A service is alive when ``GET <url>/aries`` answers 200 within the probe
timeout.  When identity validation is requested the body must also be exactly
the ``"<name> Aries API"`` marker, which stops an unrelated HTTP server (or
another Aries service) from being registered under a name it does not own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

LIVENESS_SUFFIX = "aries"
DEFAULT_PROBE_TIMEOUT = 2.0


@dataclass(frozen=True)
class ProbeResult:
    alive: bool
    detail: str
    status_code: int | None = None


def identity_marker(name: str) -> str:
    """Return the string a service named *name* must answer from its ping endpoint."""
    return f"{name} Aries API"


def liveness_url(url: str) -> str:
    return f"{url.rstrip('/')}/{LIVENESS_SUFFIX}"


async def probe(
    url: str,
    name: str,
    validate_identity: bool = False,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> ProbeResult:
    """Ping one service endpoint.

    Args:
        url:               Base address of the service.
        name:              Registered (or requested) service name.
        validate_identity: Require the response body to be the identity marker.
        timeout:           Request timeout in seconds.
        client:            Optional shared client; a short-lived one is
                           created when omitted.

    Returns:
        A :class:`ProbeResult`.  Never raises for network failures.
    """
    target = liveness_url(url)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                resp = await own_client.get(target)
        else:
            resp = await client.get(target, timeout=timeout)
    except httpx.HTTPError as exc:
        logger.warning("Probe FAIL: service %s error: %s", name, exc)
        return ProbeResult(alive=False, detail=str(exc) or exc.__class__.__name__)
    except httpx.InvalidURL as exc:
        logger.warning("Probe FAIL: service %s has invalid url %s: %s", name, url, exc)
        return ProbeResult(alive=False, detail=f"invalid url: {exc}")

    if resp.status_code != 200:
        logger.warning(
            "Probe FAIL: service %s returned bad status code: %d", name, resp.status_code
        )
        return ProbeResult(
            alive=False,
            detail=f"unexpected status code {resp.status_code}",
            status_code=resp.status_code,
        )

    if validate_identity:
        expected = identity_marker(name)
        if resp.text.strip() != expected:
            logger.warning(
                "Probe FAIL: service %s returned unexpected response [%s]", name, resp.text[:200]
            )
            return ProbeResult(
                alive=False,
                detail=f"response does not identify as '{expected}'",
                status_code=resp.status_code,
            )

    logger.debug("Probe OK: %s (%s)", name, target)
    return ProbeResult(alive=True, detail="ok", status_code=resp.status_code)
