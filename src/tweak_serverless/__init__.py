"""
tweak-serverless

Standard plumbing for AWS Lambda request handlers: environment driven
configuration, structured logging (with an optional Loggly sink), error
reporting to Airbrake, schema validation of events and contexts, and a single
path turning every outcome into one well-formed response.

Example:
    from tweak_serverless import DispatchMode, create_facade

    facade = create_facade({'name': 'orders-api', 'version': '1.0.0'})

    @facade.handler(event_schema=CreateOrderEvent, body_parser='json', dispatch=DispatchMode.RESPOND_AFTER)
    async def lambda_handler(event, context, callback):
        return {'statusCode': 201, 'payload': {'id': '42'}}
"""

__version__ = "1.0.0"

from tweak_serverless.handlers.facade import Facade, create_facade
from tweak_serverless.handlers.lifecycle import CompletionCallback, Invocation, Lifecycle
from tweak_serverless.handlers.utils.errors import (
    ConfigurationError,
    ErrorKind,
    StructuredError,
    ValidationFailure,
    create_error,
)
from tweak_serverless.handlers.utils.monitoring import AirbrakeNotifier, DisabledMonitor, Monitor
from tweak_serverless.handlers.utils.observability import LogglyHandler
from tweak_serverless.handlers.utils.schema import SchemaEngine, SchemaResult
from tweak_serverless.models import (
    BodyParser,
    DispatchMode,
    FacadeConfig,
    LifecycleOptions,
    Notice,
    Output,
    PackageInfo,
    Response,
)

__all__ = [
    "Facade",
    "create_facade",
    "Lifecycle",
    "Invocation",
    "CompletionCallback",
    "ConfigurationError",
    "ErrorKind",
    "StructuredError",
    "ValidationFailure",
    "create_error",
    "Monitor",
    "AirbrakeNotifier",
    "DisabledMonitor",
    "LogglyHandler",
    "SchemaEngine",
    "SchemaResult",
    "BodyParser",
    "DispatchMode",
    "FacadeConfig",
    "LifecycleOptions",
    "Notice",
    "Output",
    "PackageInfo",
    "Response",
]
