"""
Test helper functions for common testing operations
"""

import json
from typing import Any, Dict, List, Optional

import httpx


def assert_response_structure(response_data: Dict[str, Any], expected_keys: List[str], optional_keys: Optional[List[str]] = None):
    """Assert that response has expected structure"""
    optional_keys = optional_keys or []

    for key in expected_keys:
        assert key in response_data, f"Required key '{key}' missing from response"

    allowed_keys = set(expected_keys + optional_keys)
    unexpected_keys = set(response_data.keys()) - allowed_keys

    assert not unexpected_keys, f"Unexpected keys in response: {unexpected_keys}"


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: List[str]):
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join([record.getMessage() for record in caplog.records])

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"


def request_json(request: httpx.Request) -> Dict[str, Any]:
    """Decode the JSON body of a recorded outbound request"""
    return json.loads(request.content)
