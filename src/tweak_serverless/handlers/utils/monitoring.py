"""
Error monitoring sinks.

`AirbrakeNotifier` reports errors to the Airbrake notices API. When monitoring
is turned off a `DisabledMonitor` stands in, so callers never need to check
whether monitoring is enabled.
"""

import traceback
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from aws_lambda_powertools.logging import Logger

from tweak_serverless.handlers.utils.observability import LIBRARY_TAG, safe_json
from tweak_serverless.models.input import PackageInfo
from tweak_serverless.models.output import Notice

AIRBRAKE_HOST = 'https://api.airbrake.io'
NOTICES_PATH = '/api/v3/projects/{project_id}/notices'
FAKED_NOTICE_ID = 'faked'


@runtime_checkable
class Monitor(Protocol):
    """Anything able to report an error and acknowledge it."""

    async def notify(self, error: BaseException) -> Notice:
        ...


class DisabledMonitor:
    """Stand-in used when monitoring is disabled: logs and acknowledges."""

    def __init__(self, logger: Logger):
        self.logger = logger

    async def notify(self, error: BaseException) -> Notice:
        self.logger.debug('[Airbrake] Notify', extra={'err': safe_json(error)})
        return Notice(id=FAKED_NOTICE_ID)


class AirbrakeNotifier:
    """Send error notices to Airbrake.

    Args:
        project_id: Airbrake project id
        project_key: Airbrake project key
        environment: Deployment environment reported with each notice
        package: Package hosting the handlers, reported as context
        host: Airbrake API host
        transport: Optional httpx transport, mainly for tests
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        project_id: str,
        project_key: str,
        environment: str,
        package: PackageInfo,
        host: str = AIRBRAKE_HOST,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 5.0,
    ):
        self.project_id = project_id
        self.project_key = project_key
        self.environment = environment
        self.package = package
        self.host = host
        self.transport = transport
        self.timeout = timeout

    def build_notice(self, error: BaseException) -> dict[str, Any]:
        """Notice body for ``error``, including its chain of causes."""
        errors = []
        current: Optional[BaseException] = error
        while current is not None and len(errors) < 10:
            errors.append({
                'type': type(current).__name__,
                'message': str(current),
                'backtrace': [
                    {'file': frame.filename, 'line': frame.lineno, 'function': frame.name}
                    for frame in reversed(traceback.extract_tb(current.__traceback__))
                ],
            })
            current = current.__cause__ or current.__context__

        notice: dict[str, Any] = {
            'errors': errors,
            'context': {
                'notifier': {'name': LIBRARY_TAG, 'version': self.package.version},
                'environment': self.environment,
                'component': self.package.name,
                'version': self.package.version,
                'severity': 'error',
            },
        }
        data = getattr(error, 'data', None)
        if data:
            notice['params'] = {'data': safe_json(data)}
        return notice

    async def notify(self, error: BaseException) -> Notice:
        async with httpx.AsyncClient(base_url=self.host, timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                NOTICES_PATH.format(project_id=self.project_id),
                params={'key': self.project_key},
                json=self.build_notice(error),
            )
            response.raise_for_status()
        return Notice.model_validate(response.json())
