"""
Unit tests for the site service

Covers status derivation, URL extraction from exports, and the request
sequence each site operation sends to the remote API.
"""

from unittest.mock import Mock

import pytest

from site_driver.core.exceptions import UpstreamError
from site_driver.core.schemas.site import SiteStatus
from site_driver.providers.pulumi.client import PulumiClient
from site_driver.providers.pulumi.schemas import OperationStatus, UntypedDeployment
from site_driver.services.site_service import SiteService, derive_status, website_url
from tests.utils.factories import ROOT_STACK_TYPE, ExportFactory
from tests.utils.helpers import request_json

pytestmark = pytest.mark.unit


class TestDeriveStatus:
    """Test site status derivation from the current operation"""

    def test_no_operation_is_idle(self):
        assert derive_status(None) is SiteStatus.IDLE

    def test_destroy_is_deleting(self):
        assert derive_status(OperationStatus(kind="destroy")) is SiteStatus.DELETING

    @pytest.mark.parametrize("kind", ["update", "refresh", "preview", "import"])
    def test_other_operations_are_updating(self, kind):
        assert derive_status(OperationStatus(kind=kind)) is SiteStatus.UPDATING


class TestWebsiteUrl:
    """Test reading the website URL out of an export"""

    def test_url_from_root_stack(self):
        export = UntypedDeployment.model_validate(ExportFactory.create_site_export("http://example.test"))

        assert website_url(export) == "http://example.test"

    def test_unknown_schema_version(self):
        payload = ExportFactory.create_site_export()
        payload["version"] = 4

        assert website_url(UntypedDeployment.model_validate(payload)) is None

    def test_no_root_stack_resource(self):
        payload = ExportFactory.create_export(
            resources=[ExportFactory.create_resource("aws:s3/bucket:Bucket", outputs={"websiteUrl": "x"})]
        )

        assert website_url(UntypedDeployment.model_validate(payload)) is None

    def test_empty_export(self):
        assert website_url(UntypedDeployment.model_validate(ExportFactory.create_export())) is None

    def test_root_stack_without_url(self):
        payload = ExportFactory.create_export(
            resources=[ExportFactory.create_resource(ROOT_STACK_TYPE, outputs={"bucketName": "b"})]
        )

        assert website_url(UntypedDeployment.model_validate(payload)) is None

    def test_non_string_url(self):
        payload = ExportFactory.create_export(
            resources=[ExportFactory.create_resource(ROOT_STACK_TYPE, outputs={"websiteUrl": 42})]
        )

        assert website_url(UntypedDeployment.model_validate(payload)) is None

    def test_first_root_stack_wins(self):
        payload = ExportFactory.create_export(
            resources=[
                ExportFactory.create_resource(ROOT_STACK_TYPE, "a", {"websiteUrl": "http://first"}),
                ExportFactory.create_resource(ROOT_STACK_TYPE, "b", {"websiteUrl": "http://second"}),
            ]
        )

        assert website_url(UntypedDeployment.model_validate(payload)) == "http://first"

    def test_undecodable_current_deployment(self):
        export = UntypedDeployment(version=3, deployment={"resources": "not-a-list"})

        with pytest.raises(UpstreamError, match="unmarshaling deployment"):
            website_url(export)

    def test_null_current_deployment(self):
        export = UntypedDeployment.model_validate({"version": 3, "deployment": None})

        assert website_url(export) is None


class TestDeploymentSettings:
    """Test the static settings stored on new stacks"""

    def test_wire_shape(self, settings):
        service = SiteService(settings, Mock(spec=PulumiClient))

        assert service.deployment_settings().to_wire() == {
            "sourceContext": {"git": {"branch": "main", "repoDir": "static-site"}},
            "operationContext": {
                "environmentVariables": {"AWS_REGION": "us-west-2"},
                "oidc": {
                    "aws": {
                        "roleArn": "arn:aws:iam::123456789012:role/site-deploy",
                        "sessionName": "site-deploy",
                    }
                },
            },
            "gitHub": {
                "repository": "acme/site-programs",
                "paths": ["static-site/**"],
                "deployCommits": True,
                "previewPullRequests": False,
            },
        }

    def test_no_directory_omits_paths(self, settings):
        service = SiteService(settings.model_copy(update={"directory": ""}), Mock(spec=PulumiClient))

        wire = service.deployment_settings().to_wire()

        assert "paths" not in wire["gitHub"]
        assert wire["sourceContext"] == {"git": {"branch": "main"}}

    def test_requires_resolved_organization(self, settings):
        with pytest.raises(ValueError):
            SiteService(settings.model_copy(update={"organization": None}), Mock(spec=PulumiClient))


@pytest.mark.asyncio
class TestSiteOperations:
    """Test the remote call sequence of each site operation"""

    async def test_create(self, site_service, fake_api):
        await site_service.create("my-site", "<h1>hello</h1>")

        assert [fake_api._endpoint(r) for r in fake_api.requests] == [
            "create_stack",
            "settings",
            "deployments",
        ]
        stack = fake_api.stacks["my-site"]
        assert stack["settings"]["gitHub"]["repository"] == "acme/site-programs"
        assert stack["deployments"] == [
            {
                "operationContext": {"environmentVariables": {"SITE_CONTENT": "<h1>hello</h1>"}},
                "inheritSettings": True,
                "operation": "update",
            }
        ]

    async def test_create_existing_stack(self, site_service, fake_api):
        fake_api.add_stack("my-site")

        await site_service.create("my-site", "again")

        assert len(fake_api.stacks["my-site"]["deployments"]) == 1

    async def test_create_stops_when_settings_fail(self, site_service, fake_api):
        fake_api.fail("settings", 400, "bad settings")

        with pytest.raises(UpstreamError) as exc_info:
            await site_service.create("my-site", "content")

        assert exc_info.value.step == "configuring deployment"
        assert fake_api.calls("deployments") == []
        # No rollback of the registered stack
        assert "my-site" in fake_api.stacks

    async def test_get(self, site_service, fake_api):
        fake_api.add_stack("my-site", export=ExportFactory.create_site_export("http://site.test"))

        site = await site_service.get("my-site")

        assert site.id == "my-site"
        assert site.url == "http://site.test"
        assert site.status is SiteStatus.IDLE

    async def test_get_while_deleting(self, site_service, fake_api):
        fake_api.add_stack("my-site", operation="destroy")

        site = await site_service.get("my-site")

        assert site.status is SiteStatus.DELETING
        assert site.url is None

    async def test_update_does_not_resend_settings(self, site_service, fake_api):
        fake_api.add_stack("my-site")

        await site_service.update("my-site", "new content")

        assert fake_api.calls("settings") == []
        body = request_json(fake_api.calls("deployments")[0])
        assert body["inheritSettings"] is True
        assert body["operationContext"] == {"environmentVariables": {"SITE_CONTENT": "new content"}}

    async def test_delete(self, site_service, fake_api):
        fake_api.add_stack("my-site")

        await site_service.delete("my-site")

        body = request_json(fake_api.calls("deployments")[0])
        assert body == {"inheritSettings": True, "operation": "destroy"}
