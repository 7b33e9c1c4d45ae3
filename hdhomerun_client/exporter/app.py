# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A FastAPI server that serves Prometheus metrics for HDHomeRun devices.

Each scrape must carry a "target" query parameter naming the device to
scrape; a new connection to the device is made for every scrape.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..internal_types import *
from ..constants import DEFAULT_PORT, DEFAULT_TIMEOUT
from ..client import HdhrClient, hdhomerun_connect
from ..discovery import format_addr
from .collector import gather_device_snapshot, generate_metrics
from .logger import logger

DEFAULT_METRICS_PATH = "/metrics"

Dialer = Callable[[str], Awaitable[HdhrClient]]
"""A function that connects to the device at an address, for a single scrape."""

def target_address(target: str) -> str:
    """Returns the device address for a scrape target, adding the default port
       if the target does not include one."""
    if target.startswith('['):
        if ']:' in target:
            return target
        return format_addr(target.strip('[]'), DEFAULT_PORT)
    if target.count(':') == 1:
        return target
    return format_addr(target, DEFAULT_PORT)

def _error_text(e: BaseException) -> str:
    result = str(e)
    return result if result != '' else e.__class__.__name__

def create_app(
        metrics_path: str=DEFAULT_METRICS_PATH,
        timeout_secs: float=DEFAULT_TIMEOUT,
        dial: Optional[Dialer]=None,
      ) -> FastAPI:
    """Creates the exporter FastAPI app.

    Args:
        metrics_path: The URL path that metrics are served on. "/" redirects here.
        timeout_secs: The timeout for each request to a device; 0 disables it.
                      Only used by the default dialer.
        dial: An optional function used to connect to a device on each scrape.
    """
    if dial is None:
        async def default_dial(addr: str) -> HdhrClient:
            return await hdhomerun_connect(addr, timeout_secs=timeout_secs)
        dial = default_dial

    @asynccontextmanager
    async def fastapi_lifetime(app: FastAPI) -> AsyncIterator[None]:
        try:
            logger.info(f"HDHomeRun exporter starting; serving metrics at {metrics_path}")
            yield
        finally:
            logger.info("HDHomeRun exporter shutting down")

    app = FastAPI(lifespan=fastapi_lifetime)
    app.state.metrics_path = metrics_path
    app.state.dial = dial

    router = APIRouter()

    @router.get(metrics_path)
    async def metrics(request: Request, target: Optional[str]=None) -> Response:
        """Scrapes the device named by the target query parameter."""
        if target is None or target == '':
            return PlainTextResponse("missing target parameter", status_code=400)
        addr = target_address(target)
        device_dial: Dialer = request.app.state.dial
        try:
            client = await device_dial(addr)
        except Exception as e:
            logger.info(f"Failed to dial HDHomeRun device at {addr!r}: {e!r}")
            return PlainTextResponse(
                f'failed to dial HDHomeRun device at "{addr}": {_error_text(e)}',
                status_code=500)
        try:
            async with client:
                snapshot = await gather_device_snapshot(client)
        except Exception as e:
            logger.info(f"Failed to collect metrics from HDHomeRun device at {addr!r}: {e!r}")
            return PlainTextResponse(
                f'failed to collect metrics from HDHomeRun device at "{addr}": {_error_text(e)}',
                status_code=500)
        return Response(content=generate_metrics(snapshot), media_type=CONTENT_TYPE_LATEST)

    @router.get("/")
    async def root() -> RedirectResponse:
        return RedirectResponse(url=metrics_path, status_code=301)

    app.include_router(router)
    return app
