"""
FastAPI Application - Prometheus exposition endpoint

Serves the latest published snapshot of every collector plus the exporter's
own counters. Scrapes never trigger API calls; they only render what the
collectors last published.

Endpoints:
    GET /metrics   Prometheus text exposition
    GET /healthz   liveness, always "Ok"
    GET /readyz    readiness, always "Ok"

Usage:
    app = create_app(registry, scheduler=scheduler, client=client, write_timeout=10)
    uvicorn.Server(uvicorn.Config(app, host="0.0.0.0", port=8080)).run()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from ado_exporter import __version__
from ado_exporter.api.middleware import RequestIDMiddleware, WriteTimeoutMiddleware
from ado_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from ado_exporter.collectors.scheduler import CollectorScheduler
from ado_exporter.core import get_logger
from ado_exporter.core.registry import MetricsRegistry

logger = get_logger(__name__)


def create_app(
    registry: MetricsRegistry,
    scheduler: CollectorScheduler | None = None,
    client: AzureDevOpsRESTClient | None = None,
    write_timeout: float = 10.0,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        registry: Registry whose snapshots are served on /metrics
        scheduler: Started on application startup and stopped on shutdown (optional)
        client: REST client closed on shutdown (optional)
        write_timeout: Seconds a handler may take before answering 503

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"azure-devops-exporter v{__version__} starting up")
        if scheduler is not None:
            await scheduler.start()
        try:
            yield
        finally:
            logger.info("azure-devops-exporter shutting down")
            if scheduler is not None:
                await scheduler.stop()
            if client is not None:
                await client.aclose()

    app = FastAPI(
        title="Azure DevOps Exporter",
        description="Prometheus metrics for Azure DevOps",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - last added is executed first)
    app.add_middleware(WriteTimeoutMiddleware, timeout=write_timeout)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=registry.render(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz", response_class=PlainTextResponse)
    async def healthz() -> str:
        return "Ok"

    @app.get("/readyz", response_class=PlainTextResponse)
    async def readyz() -> str:
        return "Ok"

    return app
