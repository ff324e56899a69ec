#!/usr/bin/env python3
"""Run the site deployment driver"""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import uvicorn
from pydantic import ValidationError

from site_driver.core.config import REQUIRED_FLAGS, Settings
from site_driver.core.exceptions import ConfigurationError
from site_driver.core.logging_config import init_application_logging, setup_logging
from site_driver.main import create_app

logger = logging.getLogger("site_driver.run")

# argparse dest -> Settings field
FLAG_FIELDS = {
    "repo": "repository",
    "branch": "branch",
    "dir": "directory",
    "role_arn": "role_arn",
    "session_name": "session_name",
    "token": "api_token",
    "org": "organization",
    "project": "project",
    "addr": "listen_address",
    "api_url": "api_url",
    "aws_region": "aws_region",
    "log_level": "log_level",
    "json_logs": "json_logs",
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line flags.

    Every flag defaults to None so unset flags fall back to the environment
    and .env file.
    """
    parser = argparse.ArgumentParser(
        prog="site-driver",
        description="HTTP service managing sites as remotely deployed stacks",
    )
    parser.add_argument("--repo", help="the GitHub repository that contains the site's deployment program")
    parser.add_argument("--branch", help="the git branch that contains the site's deployment program (default: main)")
    parser.add_argument("--dir", help="the subdirectory of the git repository that contains the site's deployment program")
    parser.add_argument("--role-arn", help="the AWS IAM Role ARN to use for OIDC integration")
    parser.add_argument("--session-name", help="the session name to use for AWS OIDC integration (default: site-deploy)")
    parser.add_argument("--token", help="the API token to use")
    parser.add_argument("--org", help="the organization to use (default: the token owner's first organization)")
    parser.add_argument("--project", help="the project to deploy")
    parser.add_argument("--addr", help="the address to listen on (default: :8080)")
    parser.add_argument("--api-url", help="the management API base URL")
    parser.add_argument("--aws-region", help="the AWS region deployments run in (default: us-west-2)")
    parser.add_argument("--log-level", help="the log level (default: INFO)")
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="emit structured JSON logs (default: on)",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """
    Build immutable settings from parsed flags.

    Raises:
        ConfigurationError: If required settings are missing or invalid
    """
    overrides: Dict[str, Any] = {}
    for dest, field in FLAG_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[field] = value

    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else ""
            if field in REQUIRED_FLAGS:
                problems.append(f"the {REQUIRED_FLAGS[field]} flag is required")
            else:
                problems.append(f"invalid {field}: {error['msg']}")
        raise ConfigurationError("; ".join(problems)) from e


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
        host, port = settings.listen_host_port
    except (ConfigurationError, ValueError) as e:
        setup_logging(enable_json=False)
        logger.critical("Invalid configuration: %s", e)
        return 1

    init_application_logging(settings)

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
