"""Site operations translated onto remote stacks and deployments.

A site is a remote stack of the configured project. Nothing is stored
locally: status and URL are derived from the remote API on every read, and
writes only confirm that the remote API accepted a deployment.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from site_driver.core.config import Settings
from site_driver.core.exceptions import UpstreamError
from site_driver.core.schemas.site import Site, SiteStatus
from site_driver.providers.pulumi.client import PulumiClient
from site_driver.providers.pulumi.schemas import (
    DEPLOYMENT_SCHEMA_VERSION_CURRENT,
    AWSOIDCContext,
    CreateDeploymentRequest,
    DeploymentSettings,
    DeploymentV3,
    GitContext,
    GitHubContext,
    OIDCContext,
    OperationContext,
    OperationStatus,
    SourceContext,
    UntypedDeployment,
)

logger = logging.getLogger(__name__)

# Environment variable carrying site content into the deployment program
SITE_CONTENT_ENV = "SITE_CONTENT"

# Stack output holding the site's public URL
WEBSITE_URL_OUTPUT = "websiteUrl"


def derive_status(operation: Optional[OperationStatus]) -> SiteStatus:
    """Map a stack's current operation onto a site status."""
    if operation is None:
        return SiteStatus.IDLE
    if operation.kind == "destroy":
        return SiteStatus.DELETING
    return SiteStatus.UPDATING


def website_url(export: UntypedDeployment) -> Optional[str]:
    """
    Read the website URL output from an exported deployment.

    Exports in an unknown schema version, a null deployment, exports without
    a root stack resource, and non-string outputs all yield ``None``.

    Raises:
        UpstreamError: If a current-version deployment cannot be decoded
    """
    if export.version != DEPLOYMENT_SCHEMA_VERSION_CURRENT:
        return None
    payload = export.deployment if export.deployment is not None else {}
    try:
        deployment = DeploymentV3.model_validate(payload)
    except ValidationError as e:
        raise UpstreamError("getting stack outputs", f"unmarshaling deployment: {e}") from e

    root = deployment.root_stack()
    if root is None:
        return None
    url = root.outputs.get(WEBSITE_URL_OUTPUT)
    return url if isinstance(url, str) else None


class SiteService:
    """Create, inspect, update and delete sites.

    Attributes:
        settings: Immutable settings with the organization already resolved
        client: Remote API client
    """

    def __init__(self, settings: Settings, client: PulumiClient) -> None:
        if not settings.organization:
            raise ValueError("SiteService requires a resolved organization")
        self.settings = settings
        self.client = client

    @property
    def org(self) -> str:
        return self.settings.organization or ""

    @property
    def project(self) -> str:
        return self.settings.project

    def deployment_settings(self) -> DeploymentSettings:
        """Build the static settings stored on every new stack."""
        s = self.settings
        return DeploymentSettings(
            source_context=SourceContext(
                git=GitContext(branch=s.branch or None, repo_dir=s.directory or None),
            ),
            operation_context=OperationContext(
                environment_variables={"AWS_REGION": s.aws_region},
                oidc=OIDCContext(
                    aws=AWSOIDCContext(role_arn=s.role_arn, session_name=s.session_name or None),
                ),
            ),
            github=GitHubContext(
                repository=s.repository,
                paths=s.deploy_paths,
                deploy_commits=True,
                preview_pull_requests=False,
            ),
        )

    async def _start_update(self, site_id: str, content: str) -> None:
        request = CreateDeploymentRequest(
            operation_context=OperationContext(
                environment_variables={SITE_CONTENT_ENV: content},
            ),
            inherit_settings=True,
            operation="update",
        )
        await self.client.create_deployment(self.org, self.project, site_id, request)

    async def create(self, site_id: str, content: str) -> None:
        """
        Register the stack, store its deployment settings, and start the
        first update.

        Registering an existing stack is not an error. A failure part way
        through leaves the remote stack as it is.
        """
        created = await self.client.create_stack(self.org, self.project, site_id)
        if created:
            logger.info("created stack '%s/%s/%s'", self.org, self.project, site_id)
        else:
            logger.info("stack '%s/%s/%s' already exists", self.org, self.project, site_id)

        await self.client.configure_deployment_settings(
            self.org, self.project, site_id, self.deployment_settings()
        )
        await self._start_update(site_id, content)
        logger.info("started update of site '%s'", site_id)

    async def get(self, site_id: str) -> Site:
        """Derive the site's current view from its stack and latest export."""
        stack = await self.client.get_stack(self.org, self.project, site_id)
        status = derive_status(stack.current_operation)

        export = await self.client.export_stack(self.org, self.project, site_id)
        url = website_url(export)
        if url is None:
            logger.debug("no website URL available for site '%s'", site_id)

        return Site(id=site_id, url=url, status=status)

    async def update(self, site_id: str, content: str) -> None:
        """Start an update that reuses the stack's stored settings."""
        await self._start_update(site_id, content)
        logger.info("started update of site '%s'", site_id)

    async def delete(self, site_id: str) -> None:
        """Start a destroy of the site's stack."""
        request = CreateDeploymentRequest(inherit_settings=True, operation="destroy")
        await self.client.create_deployment(self.org, self.project, site_id, request)
        logger.info("started destroy of site '%s'", site_id)
