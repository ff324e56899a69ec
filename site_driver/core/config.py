"""
Application configuration using Pydantic Settings.

Configuration values can be passed as keyword arguments (the CLI flags in
``site_driver.run``), set via ``SITE_`` prefixed environment variables, or
placed in a .env file. The resulting object is frozen: it is built once at
process start and handed to the application factory.
"""

from typing import List, Optional, Tuple

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.pulumi.com/api"

# Human-facing flag names for required settings, used in startup errors
REQUIRED_FLAGS = {
    "repository": "--repo",
    "role_arn": "--role-arn",
    "api_token": "--token",
    "project": "--project",
}


class Settings(BaseSettings):
    """Static configuration for the site deployment driver."""

    model_config = SettingsConfigDict(
        env_prefix="SITE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application settings
    app_name: str = "Site Deployment Driver"
    version: str = "1.0.0"

    # Source repository holding the site's deployment program
    repository: str = Field(..., min_length=1)
    branch: str = "main"
    directory: str = ""

    # AWS OIDC integration used by remote deployments
    role_arn: str = Field(..., min_length=1)
    session_name: str = "site-deploy"
    aws_region: str = "us-west-2"

    # Remote management API
    api_url: str = DEFAULT_API_URL
    api_token: SecretStr
    organization: Optional[str] = None
    project: str = Field(..., min_length=1)

    # Server
    listen_address: str = ":8080"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    @field_validator("api_token")
    @classmethod
    def validate_api_token(cls, v: SecretStr) -> SecretStr:
        """Reject an empty API token"""
        if not v.get_secret_value():
            raise ValueError("API token must not be empty")
        return v

    @field_validator("organization")
    @classmethod
    def blank_organization_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty organization as 'resolve at startup'"""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def listen_host_port(self) -> Tuple[str, int]:
        """
        Split the listen address into host and port.

        An empty host (``:8080``) binds every interface.
        """
        host, sep, port = self.listen_address.rpartition(":")
        if not sep:
            raise ValueError(f"Invalid listen address: {self.listen_address}")
        return host or "0.0.0.0", int(port)

    @property
    def deploy_paths(self) -> Optional[List[str]]:
        """Trigger paths restricting commit deploys to the program directory."""
        if not self.directory:
            return None
        return [f"{self.directory}/**"]

    def with_organization(self, organization: str) -> "Settings":
        """Return a copy of these settings bound to ``organization``."""
        return self.model_copy(update={"organization": organization})
