"""Site routes: create, inspect, update and delete."""
import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import APIRouter, Depends, Request, Response, status

from site_driver.core.exceptions import ClientDisconnected
from site_driver.core.schemas.site import Site, SiteCreate, SiteCreated, SiteUpdate
from site_driver.services.site_service import SiteService

T = TypeVar("T")

# Create router
router = APIRouter()


def get_site_service(request: Request) -> SiteService:
    """Return the site service built during application startup"""
    return request.app.state.site_service


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def run_until_disconnect(
    request: Request, func: Callable[..., Awaitable[T]], *args: Any
) -> T:
    """
    Run a site operation, cancelling it if the caller disconnects first.

    Raises:
        ClientDisconnected: If the caller went away before the operation finished
    """
    call = asyncio.ensure_future(func(*args))
    watch = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({call, watch}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in (call, watch) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if call in done:
        return call.result()
    raise ClientDisconnected(f"{request.method} {request.url.path}")


@router.post("", response_model=SiteCreated, status_code=status.HTTP_202_ACCEPTED)
async def create_site(
    request: Request, body: SiteCreate, service: SiteService = Depends(get_site_service)
) -> SiteCreated:
    """
    Create a site.

    Registers the site's stack, configures how it is deployed, and starts the
    first deployment. The response only confirms the deployment was accepted.
    """
    await run_until_disconnect(request, service.create, body.id, body.content)
    return SiteCreated(id=body.id)


@router.get("/{site_id}", response_model=Site, response_model_exclude_none=True)
async def get_site(
    request: Request, site_id: str, service: SiteService = Depends(get_site_service)
) -> Site:
    """
    Get a site's status and URL.

    The URL is omitted until a deployment has published one.
    """
    return await run_until_disconnect(request, service.get, site_id)


@router.post("/{site_id}", status_code=status.HTTP_202_ACCEPTED)
async def update_site(
    request: Request,
    site_id: str,
    body: SiteUpdate,
    service: SiteService = Depends(get_site_service),
) -> Response:
    """Start a deployment of new site content."""
    await run_until_disconnect(request, service.update, site_id, body.content)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.delete("/{site_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_site(
    request: Request, site_id: str, service: SiteService = Depends(get_site_service)
) -> Response:
    """Start tearing down a site."""
    await run_until_disconnect(request, service.delete, site_id)
    return Response(status_code=status.HTTP_202_ACCEPTED)
