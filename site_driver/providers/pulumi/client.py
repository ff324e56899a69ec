"""Async client for the Pulumi Cloud REST API.

Each remote call the service makes is a named method that returns a decoded
result or raises ``UpstreamError``. The underlying ``httpx.AsyncClient`` is
created once per process and shared read-only across requests.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, SecretStr

from site_driver.core.config import Settings
from site_driver.core.exceptions import UpstreamError
from site_driver.providers.pulumi.schemas import (
    CreateDeploymentRequest,
    CreateStackRequest,
    DeploymentSettings,
    StackResponse,
    UntypedDeployment,
    UserResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def build_http_client(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Create the shared HTTP client for the remote API.

    Args:
        settings: Application settings supplying the API base URL
        transport: Optional transport override (used by tests)

    Returns:
        An ``httpx.AsyncClient`` with the transport's default timeouts
    """
    return httpx.AsyncClient(base_url=settings.api_url, transport=transport)


def _stack_path(*segments: str) -> str:
    return "/" + "/".join(quote(segment, safe="") for segment in segments)


class PulumiClient:
    """Thin wrapper around the remote stack, deployment and user endpoints.

    Example usage:
        client = PulumiClient(build_http_client(settings), settings.api_token)
        created = await client.create_stack("acme", "sites", "my-site")
        stack = await client.get_stack("acme", "sites", "my-site")

    Attributes:
        http: Shared async HTTP client, already bound to the API base URL
    """

    def __init__(self, http: httpx.AsyncClient, api_token: SecretStr) -> None:
        self.http = http
        self._api_token = api_token

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self._api_token.get_secret_value()}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        step: str,
        method: str,
        path: str,
        expected: Tuple[int, ...],
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Issue one remote call and check its status.

        Raises:
            UpstreamError: On transport failure or a status outside ``expected``
        """
        try:
            response = await self.http.request(method, path, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise UpstreamError(step, f"{type(e).__name__}: {e}") from e

        if response.status_code not in expected:
            raise UpstreamError(
                step,
                f"unexpected status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _decode(step: str, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        """Decode a JSON response into ``model``."""
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            raise UpstreamError(step, f"decoding response: {e}", body=response.text) from e

    async def create_stack(self, org: str, project: str, stack: str) -> bool:
        """
        Register a stack.

        Returns:
            True if the stack was created, False if it already existed
        """
        response = await self._request(
            "creating stack",
            "POST",
            _stack_path("stacks", org, project),
            expected=(200, 409),
            body=CreateStackRequest(stack_name=stack).to_wire(),
        )
        return response.status_code == 200

    async def configure_deployment_settings(
        self, org: str, project: str, stack: str, settings: DeploymentSettings
    ) -> None:
        """Store the deployment settings used by all future deployments of a stack."""
        await self._request(
            "configuring deployment",
            "POST",
            _stack_path("preview", org, project, stack, "deployment", "settings"),
            expected=(200,),
            body=settings.to_wire(),
        )

    async def create_deployment(
        self, org: str, project: str, stack: str, request: CreateDeploymentRequest
    ) -> None:
        """Ask the remote API to run a deployment. Does not wait for it."""
        await self._request(
            "starting deployment",
            "POST",
            _stack_path("preview", org, project, stack, "deployments"),
            expected=(202,),
            body=request.to_wire(),
        )

    async def get_stack(self, org: str, project: str, stack: str) -> StackResponse:
        step = "getting stack"
        response = await self._request(
            step, "GET", _stack_path("stacks", org, project, stack), expected=(200,)
        )
        return self._decode(step, response, StackResponse)

    async def export_stack(self, org: str, project: str, stack: str) -> UntypedDeployment:
        """Fetch the latest exported deployment snapshot of a stack."""
        step = "getting stack outputs"
        response = await self._request(
            step, "GET", _stack_path("stacks", org, project, stack, "export"), expected=(200,)
        )
        return self._decode(step, response, UntypedDeployment)

    async def get_default_organization(self) -> str:
        """
        Look up the organization to use when none is configured.

        Returns:
            The login name of the first organization of the token's user

        Raises:
            UpstreamError: If the lookup fails or the user has no organizations
        """
        step = "getting default organization"
        response = await self._request(step, "GET", "/user", expected=(200,))
        user = self._decode(step, response, UserResponse)
        if not user.organizations:
            raise UpstreamError(step, "user belongs to no organizations")
        return user.organizations[0].github_login
