"""Wire schemas for the Pulumi Cloud REST API.

Only the fields this service reads or writes are modelled. Request bodies are
serialized with ``by_alias=True, exclude_none=True`` so unset sections are
left out of the payload entirely.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Export schema version this service knows how to read
DEPLOYMENT_SCHEMA_VERSION_CURRENT = 3

# Resource type of the root stack resource in an export
ROOT_STACK_TYPE = "pulumi:pulumi:Stack"


class WireModel(BaseModel):
    """Base schema for remote API payloads"""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the JSON body expected by the remote API."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Deployment settings
# ============================================================================

class GitContext(WireModel):
    branch: Optional[str] = None
    repo_dir: Optional[str] = Field(None, alias="repoDir")


class SourceContext(WireModel):
    git: GitContext


class AWSOIDCContext(WireModel):
    role_arn: Optional[str] = Field(None, alias="roleArn")
    session_name: Optional[str] = Field(None, alias="sessionName")


class OIDCContext(WireModel):
    aws: Optional[AWSOIDCContext] = None


class OperationContext(WireModel):
    environment_variables: Optional[Dict[str, str]] = Field(None, alias="environmentVariables")
    oidc: Optional[OIDCContext] = None


class GitHubContext(WireModel):
    repository: Optional[str] = None
    paths: Optional[List[str]] = None
    deploy_commits: bool = Field(False, alias="deployCommits")
    preview_pull_requests: bool = Field(False, alias="previewPullRequests")


class DeploymentSettings(WireModel):
    """Stored configuration controlling how a stack's deployments run"""

    source_context: Optional[SourceContext] = Field(None, alias="sourceContext")
    operation_context: Optional[OperationContext] = Field(None, alias="operationContext")
    github: Optional[GitHubContext] = Field(None, alias="gitHub")


class CreateDeploymentRequest(DeploymentSettings):
    """
    Request body for starting a deployment.

    Settings given here override the stack's stored settings for this
    deployment only; ``inherit_settings`` pulls in everything else.
    """

    inherit_settings: bool = Field(True, alias="inheritSettings")
    operation: Literal["update", "destroy", "preview", "refresh"]


class CreateStackRequest(WireModel):
    stack_name: str = Field(..., alias="stackName")


# ============================================================================
# Responses
# ============================================================================

class OperationStatus(WireModel):
    """An in-flight operation on a stack"""

    kind: str
    author: str = ""
    started: int = 0


class StackResponse(WireModel):
    current_operation: Optional[OperationStatus] = Field(None, alias="currentOperation")


class OrganizationSummary(WireModel):
    github_login: str = Field(..., alias="githubLogin")


class UserResponse(WireModel):
    organizations: List[OrganizationSummary] = Field(default_factory=list)


class UntypedDeployment(WireModel):
    """Versioned envelope around an exported deployment"""

    version: int = 0
    deployment: Any = None


class ResourceV3(WireModel):
    urn: str = ""
    type: str
    outputs: Dict[str, Any] = Field(default_factory=dict)


class DeploymentV3(WireModel):
    resources: List[ResourceV3] = Field(default_factory=list)

    def root_stack(self) -> Optional[ResourceV3]:
        """Return the first root stack resource, if any."""
        for resource in self.resources:
            if resource.type == ROOT_STACK_TYPE:
                return resource
        return None
