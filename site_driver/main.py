"""Application factory: lifespan, middleware, error mapping and routes."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from site_driver.api import sites
from site_driver.core.config import Settings
from site_driver.core.exceptions import ClientDisconnected, ConfigurationError, UpstreamError
from site_driver.core.middleware import CorrelationIdMiddleware
from site_driver.providers.pulumi.client import PulumiClient, build_http_client
from site_driver.services.site_service import SiteService

logger = logging.getLogger("site_driver.main")


async def resolve_organization(settings: Settings, client: PulumiClient) -> Settings:
    """
    Return settings with an organization, looking up the default if unset.

    Raises:
        ConfigurationError: If the default organization cannot be determined
    """
    if settings.organization:
        return settings

    try:
        organization = await client.get_default_organization()
    except UpstreamError as e:
        raise ConfigurationError(f"getting default organization: {e}") from e

    logger.info("Using default organization '%s'", organization)
    return settings.with_organization(organization)


def create_app(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Immutable settings built at process start
        transport: Optional httpx transport for the remote API (used by tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        http = build_http_client(settings, transport)
        try:
            client = PulumiClient(http, settings.api_token)
            resolved = await resolve_organization(settings, client)
            app.state.settings = resolved
            app.state.site_service = SiteService(resolved, client)
            logger.info(
                "Serving sites for %s/%s from %s@%s",
                resolved.organization,
                resolved.project,
                resolved.repository,
                resolved.branch,
            )
            yield
        finally:
            await http.aclose()

    app = FastAPI(
        title=settings.app_name,
        description="Create, inspect, update and delete sites backed by remote stacks",
        version=settings.version,
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> PlainTextResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return PlainTextResponse("failed to parse request", status_code=400)

    @app.exception_handler(UpstreamError)
    async def upstream_error(request: Request, exc: UpstreamError) -> PlainTextResponse:
        logger.error(
            "Internal Server Error: %s",
            exc,
            extra={"step": exc.step, "upstream_status": exc.status_code, "upstream_body": exc.body},
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    @app.exception_handler(ClientDisconnected)
    async def client_disconnected(request: Request, exc: ClientDisconnected) -> PlainTextResponse:
        logger.info("Client disconnected, cancelled %s", exc)
        return PlainTextResponse("Client Closed Request", status_code=499)

    app.include_router(sites.router, prefix="/sites", tags=["Sites"])

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy"}

    return app
