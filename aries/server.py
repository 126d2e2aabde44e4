"""Aries HTTP server.

Exposes:
  GET  /version                      — version banner
  GET  /healthcheck                  — on-demand probe of every service
  GET  /api/resources/{identifier}   — search all services for an identifier
  GET  /api/services                 — list registered services
  POST /api/services                 — register a service  ``{name, url}``
  PUT  /api/services                 — update a service    ``{id, name, url}``

Start with::

    python -m aries --port 8080
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from aries import __version__
from aries.aggregator import Aggregator, DownstreamClient
from aries.config import AriesConfig
from aries.db import init_db
from aries.registry import (
    CSVServiceStore,
    HeartbeatScheduler,
    RegistryError,
    ServiceNotFoundError,
    ServiceRegistry,
    ServiceStore,
    SQLiteServiceStore,
    StoreError,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────────────────────────

class AddServiceRequest(BaseModel):
    name: str
    url: str


class UpdateServiceRequest(BaseModel):
    id: int
    name: str
    url: str


# ──────────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────────

def _registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def _aggregator(request: Request) -> Aggregator:
    return request.app.state.aggregator


def _heartbeat(request: Request) -> HeartbeatScheduler:
    return request.app.state.heartbeat


def _http_error(exc: RegistryError) -> HTTPException:
    if isinstance(exc, ServiceNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StoreError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def build_store(config: AriesConfig) -> ServiceStore:
    if config.store == "csv":
        return CSVServiceStore(config.csv_path)
    return SQLiteServiceStore(init_db(config.db_path))


# ──────────────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────────────

router = APIRouter()
api = APIRouter(prefix="/api", tags=["aries"])


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


@router.get("/version", response_class=PlainTextResponse)
async def version():
    return f"Aries version {__version__}"


@router.get("/healthcheck")
async def healthcheck(heartbeat: HeartbeatScheduler = Depends(_heartbeat)):
    outcome = await heartbeat.run_sweep()
    status = {"alive": "true"}
    for name, alive in outcome.items():
        status[name] = "true" if alive else "false"
    return status


@api.get("/resources/{identifier}")
async def resources(identifier: str, aggregator: Aggregator = Depends(_aggregator)):
    report = await aggregator.aggregate(identifier)
    return report.to_dict()


@api.get("/services")
async def list_services(registry: ServiceRegistry = Depends(_registry)):
    return [svc.to_dict() for svc in await registry.list()]


@api.post("/services")
async def add_service(req: AddServiceRequest, registry: ServiceRegistry = Depends(_registry)):
    logger.info("Request to add service: %s - %s", req.name, req.url)
    try:
        svc = await registry.add(req.name, req.url)
    except RegistryError as exc:
        logger.warning("Add service %s rejected: %s", req.name, exc)
        raise _http_error(exc) from exc
    return svc.to_dict()


@api.put("/services")
async def update_service(req: UpdateServiceRequest, registry: ServiceRegistry = Depends(_registry)):
    logger.info("Request to update service %d: %s - %s", req.id, req.name, req.url)
    try:
        svc = await registry.update(req.id, req.name, req.url)
    except RegistryError as exc:
        logger.warning("Update service %d rejected: %s", req.id, exc)
        raise _http_error(exc) from exc
    return svc.to_dict()


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Bad request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "invalid request"})


# ──────────────────────────────────────────────────────────────────
# Application factory
# ──────────────────────────────────────────────────────────────────

def create_app(
    config: AriesConfig | None = None,
    registry: ServiceRegistry | None = None,
    aggregator: Aggregator | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    When *registry* is omitted one is built from *config*.  Either way the
    registry is loaded at startup, where a store failure aborts startup.
    """
    config = config or AriesConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("===> Aries starting up <===")
        reg = registry
        if reg is None:
            reg = ServiceRegistry(build_store(config), probe_timeout=config.probe_timeout)
        await reg.load()
        agg = aggregator or Aggregator(
            reg,
            client=DownstreamClient(timeout=config.lookup_timeout),
            lookup_timeout=config.lookup_timeout,
            merge_slack=config.merge_slack,
        )
        heartbeat = HeartbeatScheduler(reg, interval=config.heartbeat_interval)
        app.state.registry = reg
        app.state.aggregator = agg
        app.state.heartbeat = heartbeat
        await heartbeat.start()
        try:
            yield
        finally:
            await heartbeat.stop()
            await agg.aclose()

    app = FastAPI(title="Aries", version=__version__, lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.include_router(router)
    app.include_router(api)
    return app
