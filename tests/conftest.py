"""
Pytest configuration and shared fixtures for tweak-serverless.

This module provides the test environment, Lambda context and event samples,
and facades wired with recording sinks instead of the real ones.
"""

import os
from typing import Any, Dict, List
from unittest.mock import Mock

import pytest

from tweak_serverless import Notice, PackageInfo, create_facade


# Test environment configuration
@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Set up test environment variables."""
    os.environ.update({
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "debug",
        "LOGGLY": "false",
        "AIRBRAKE": "false",
        "ON_LOCAL": "false",
        "POWERTOOLS_TRACE_DISABLED": "true",
        "LAMBDA_ENV_MODELER_DISABLE_CACHE": "true",
    })
    for name in ("NODE_ENV", "LOGGLY_TOKEN", "LOGGLY_SUBDOMAIN", "LOGGLY_TAGS",
                 "AIRBRAKE_PROJECT_ID", "AIRBRAKE_PROJECT_KEY"):
        os.environ.pop(name, None)


class RecordingMonitor:
    """Monitoring sink keeping every reported error."""

    def __init__(self, fail: bool = False):
        self.errors: List[BaseException] = []
        self.fail = fail

    async def notify(self, error: BaseException) -> Notice:
        self.errors.append(error)
        if self.fail:
            raise RuntimeError("monitoring unavailable")
        return Notice(id=f"notice-{len(self.errors)}")


@pytest.fixture
def package() -> PackageInfo:
    return PackageInfo(name="test-service", version="1.2.3")


@pytest.fixture
def monitor() -> RecordingMonitor:
    return RecordingMonitor()


@pytest.fixture
def failing_monitor() -> RecordingMonitor:
    return RecordingMonitor(fail=True)


@pytest.fixture
def make_facade(package):
    """Factory building facades with a mock logger and the given environment and monitor."""

    def make(environment: str = "test", monitor=None, **overrides):
        return create_facade(
            package,
            {"environment": environment, "loggly": False, "airbrake": False, **overrides},
            logger=Mock(),
            monitor=monitor or RecordingMonitor(),
        )

    return make


@pytest.fixture
def facade(package, monitor):
    """Facade in the test environment with a mock logger and a recording monitor."""
    return create_facade(
        package,
        {"environment": "test", "loggly": False, "airbrake": False},
        logger=Mock(),
        monitor=monitor,
    )


@pytest.fixture
def production_facade(package, monitor):
    """Same as `facade`, in production."""
    return create_facade(
        package,
        {"environment": "production", "loggly": False, "airbrake": False},
        logger=Mock(),
        monitor=monitor,
    )


@pytest.fixture
def callback() -> Mock:
    """Completion callback recording its calls."""
    return Mock(return_value=None)


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context for testing."""
    context = Mock()
    context.function_name = "test-lambda-function"
    context.function_version = "1"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-lambda-function"
    context.memory_limit_in_mb = "512"
    context.aws_request_id = "test-request-id-123"
    context.log_group_name = "/aws/lambda/test-lambda-function"
    context.log_stream_name = "2024/01/01/[$LATEST]test123"
    context.get_remaining_time_in_millis.return_value = 30000
    return context


@pytest.fixture
def api_gateway_event() -> Dict[str, Any]:
    """Create a sample API Gateway event for testing."""
    return {
        "httpMethod": "POST",
        "path": "/api/orders",
        "headers": {
            "Content-Type": "application/json",
            "User-Agent": "test-agent/1.0",
        },
        "body": '{"customer_name": "Test User", "order_item_count": 2}',
        "requestContext": {
            "requestId": "test-request-id-123",
            "stage": "test",
        },
        "pathParameters": None,
        "queryStringParameters": None,
        "isBase64Encoded": False,
    }


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
