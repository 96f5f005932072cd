"""
Facade - configuration, logging, monitoring and response shaping for handlers.

A handler module creates one facade at import time with `create_facade` and
wraps its handler functions with `Facade.prepare` (or the `Facade.handler`
decorator). The facade owns the process-wide configuration and sinks, and
the single failure path every lifecycle error goes through.
"""

import asyncio
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Dict, Optional, Set

from aws_lambda_powertools.logging import Logger
from pydantic_core import to_jsonable_python

from tweak_serverless.handlers.lifecycle import Lifecycle, UserHandler
from tweak_serverless.handlers.models.env_vars import get_facade_env_vars
from tweak_serverless.handlers.utils.errors import (
    DEFAULT_STATUS_CODE,
    ConfigurationError,
    ErrorKind,
    ValidationFailure,
    bad_request,
    create_error,
    normalize_error,
)
from tweak_serverless.handlers.utils.monitoring import AirbrakeNotifier, DisabledMonitor, Monitor
from tweak_serverless.handlers.utils.observability import (
    LogglyHandler,
    add_loggly_handler,
    build_tags,
    create_logger,
    safe_json,
)
from tweak_serverless.handlers.utils.schema import SchemaEngine
from tweak_serverless.models.input import FacadeConfig, LifecycleOptions, PackageInfo
from tweak_serverless.models.output import Notice, Output, Response

Callback = Callable[[Optional[BaseException], Response], Any]


@dataclass
class Facade:
    """Configuration and cross-cutting services shared by all handlers of a package."""

    package: PackageInfo
    config: FacadeConfig
    logger: Logger
    monitor: Monitor
    schema_engine: SchemaEngine = field(default_factory=SchemaEngine)
    _pending: Set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def version(self) -> str:
        return self.package.version

    @property
    def env(self) -> str:
        return self.config.environment

    @staticmethod
    def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
        return os.environ.get(name, default)

    # --------------------------------------------------------------------
    # Environment classification
    # --------------------------------------------------------------------

    def is_env(self, candidate: str) -> bool:
        return self.env == candidate

    def is_test(self) -> bool:
        return self.is_env('test')

    def is_development(self) -> bool:
        return self.is_env('development')

    def is_stage(self) -> bool:
        return self.is_env('stage')

    def is_production(self) -> bool:
        return self.is_env('production')

    # --------------------------------------------------------------------
    # Responses
    # --------------------------------------------------------------------

    def build_response(self, output: Output | Mapping | None) -> Response:
        """Turn a handler output into the response handed to the callback.

        String payloads are sent verbatim, anything else is JSON encoded.
        Encoding errors propagate.
        """
        if output is None:
            output = Output()
        elif not isinstance(output, Output):
            output = Output.model_validate(output)

        payload = output.payload
        body = payload if isinstance(payload, str) else json.dumps(to_jsonable_python(payload))
        return Response(status_code=output.status_code, headers=output.headers, body=body)

    def respond(self, output: Output | Mapping | None, callback: Optional[Callback] = None) -> Any:
        """Build the response and complete the invocation with it.

        Returns whatever ``callback`` returns, or the response when no callback is given.
        """
        response = self.build_response(output)
        if callback is None:
            return response
        return callback(None, response)

    # --------------------------------------------------------------------
    # Failures
    # --------------------------------------------------------------------

    def fail_with(self, kind: ErrorKind | str, *args: Any, callback: Optional[Callback] = None, **kwargs: Any) -> Any:
        """Build a named structured error (e.g. ``not_found``) and fail with it."""
        return self.fail(create_error(kind, *args, **kwargs), None, callback)

    def fail(self, err: Any, fallback: Optional[Mapping[str, Any]] = None, callback: Optional[Callback] = None) -> Any:
        """Unified failure path: normalize ``err``, report it, respond with it.

        ``fallback`` holds the construction arguments used when ``err`` is a
        string or a native exception (defaults to a 400, ``statusCode`` is
        accepted for ``status_code``). Inside a running event loop the response
        does not wait for the monitoring notification, see `drain`. Called with
        no running loop, the notification completes before the response is sent.
        """
        if fallback is None:
            fallback = {'status_code': DEFAULT_STATUS_CODE}
        error = normalize_error(err, fallback)

        self.notify(err if isinstance(err, BaseException) else error)

        output = error.output.model_copy(deep=True)
        payload = output.payload if output.payload is not None else {}
        if error.data is not None and not self.is_production():
            if isinstance(error.data, ValidationFailure):
                # validator internals stay out of the response
                payload['data'] = error.data.details
            else:
                payload['data'] = error.data
        output.payload = payload

        self.logger.debug('Fail with error', extra={'output': safe_json(output.model_dump(by_alias=True))})

        return self.respond(output, callback)

    def notify(self, err: BaseException) -> Optional[asyncio.Task]:
        """Report ``err`` to the monitoring sink.

        Inside a running event loop the report is scheduled as a task and
        tracked until it settles, otherwise it runs to completion right away.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._report(err))
            return None

        task = loop.create_task(self._report(err))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _report(self, err: BaseException) -> Optional[Notice]:
        try:
            notice = await self.monitor.notify(err)
        except asyncio.CancelledError:
            self.logger.warning('[Airbrake] Notice cancelled', extra={'err': safe_json(err)})
            raise
        except Exception as exc:
            self.logger.error('[Airbrake] Notice error', extra={'err': safe_json(exc)})
            return None

        self.logger.debug('[Airbrake] Notice id', extra={'notice': notice.model_dump()})
        return notice

    async def drain(self) -> None:
        """Wait for the notifications scheduled on the running loop to settle."""
        loop = asyncio.get_running_loop()
        pending = [task for task in self._pending if task.get_loop() is loop]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._pending if task.get_loop() is loop and not task.done()]

    # --------------------------------------------------------------------
    # Validation
    # --------------------------------------------------------------------

    async def validate_schema(self, data: Any, schema: Any) -> Any:
        """Validate ``data`` against ``schema``.

        Returns:
            The canonical (validated) value

        Raises:
            StructuredError: 400 carrying the `ValidationFailure` as data
        """
        result = self.schema_engine.validate(data, schema)
        if result.error is not None:
            raise bad_request(result.error.message, data=result.error)
        return result.value

    # --------------------------------------------------------------------
    # Handler lifecycle
    # --------------------------------------------------------------------

    def prepare(self, handler: UserHandler, options: Optional[LifecycleOptions] = None, **fields: Any) -> Lifecycle:
        """Wrap ``handler`` into a Lambda entry point.

        Options are given either as a `LifecycleOptions` or as its fields.
        """
        if options is None:
            options = LifecycleOptions(**fields)
        elif fields:
            options = options.model_copy(update=fields)
        return Lifecycle(facade=self, handler=handler, options=options)

    def handler(self, **fields: Any) -> Callable[[UserHandler], Lifecycle]:
        """Decorator form of `prepare`."""

        def decorator(func: UserHandler) -> Lifecycle:
            return self.prepare(func, **fields)

        return decorator


def resolve_config(overrides: Optional[Mapping[str, Any]] = None) -> FacadeConfig:
    """Resolve every setting as override, then environment, then default."""
    remaining = dict(overrides or {})
    env_vars = get_facade_env_vars()
    from_env = {
        'environment': env_vars.ENVIRONMENT,
        'log_level': env_vars.LOG_LEVEL,
        'loggly': env_vars.LOGGLY,
        'loggly_token': env_vars.LOGGLY_TOKEN,
        'loggly_subdomain': env_vars.LOGGLY_SUBDOMAIN,
        'loggly_tags': env_vars.loggly_tags,
        'airbrake': env_vars.AIRBRAKE,
        'airbrake_project_id': env_vars.AIRBRAKE_PROJECT_ID,
        'airbrake_project_key': env_vars.AIRBRAKE_PROJECT_KEY,
        'on_local': env_vars.ON_LOCAL,
    }

    values: Dict[str, Any] = {}
    for name, env_value in from_env.items():
        override = remaining.pop(name, None)
        values[name] = env_value if override is None else override

    extra = dict(remaining.pop('extra', None) or {})
    extra.update(remaining)
    values['extra'] = extra
    return FacadeConfig(**values)


def setup_logger(package: PackageInfo, config: FacadeConfig, stream: Optional[IO[str]] = None) -> Logger:
    """Console logger, plus the Loggly sink when enabled."""
    if config.loggly and not (config.loggly_token and config.loggly_subdomain):
        raise ConfigurationError('LOGGLY_TOKEN and LOGGLY_SUBDOMAIN are required when Loggly is enabled')

    logger = create_logger(service=package.name, level=config.log_level, pretty=config.on_local, stream=stream)

    if config.loggly:
        tags = build_tags(config.loggly_tags, config.environment, package.name, package.version)
        add_loggly_handler(logger, LogglyHandler(config.loggly_token, config.loggly_subdomain, tags))
    else:
        logger.warning(f'Online Logger disabled (ENVIRONMENT {config.environment})')
    return logger


def setup_monitor(package: PackageInfo, config: FacadeConfig, logger: Logger) -> Monitor:
    """Airbrake notifier when enabled, a logging stand-in otherwise."""
    if not config.airbrake:
        logger.warning(f'Airbrake disabled (ENVIRONMENT {config.environment})')
        return DisabledMonitor(logger)

    if not (config.airbrake_project_id and config.airbrake_project_key):
        raise ConfigurationError('AIRBRAKE_PROJECT_ID and AIRBRAKE_PROJECT_KEY are required when Airbrake is enabled')
    return AirbrakeNotifier(
        project_id=config.airbrake_project_id,
        project_key=config.airbrake_project_key,
        environment=config.environment,
        package=package,
    )


def create_facade(
    package: PackageInfo | Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    logger: Optional[Logger] = None,
    monitor: Optional[Monitor] = None,
    schema_engine: Optional[SchemaEngine] = None,
    stream: Optional[IO[str]] = None,
) -> Facade:
    """
    Create the facade for a package.

    Args:
        package: Package descriptor (name and version)
        overrides: Explicit settings, see `FacadeConfig`; unknown keys end up in ``config.extra``
        logger: Use this logger instead of building one from the configuration
        monitor: Use this monitoring sink instead of building one from the configuration
        schema_engine: Use this schema engine instead of the default one
        stream: Console stream of the built logger (stdout by default)

    Raises:
        ConfigurationError: When an enabled sink misses its credentials
    """
    if not isinstance(package, PackageInfo):
        package = PackageInfo.model_validate(package)
    config = resolve_config(overrides)

    if logger is None:
        logger = setup_logger(package, config, stream)
    if monitor is None:
        monitor = setup_monitor(package, config, logger)

    return Facade(
        package=package,
        config=config,
        logger=logger,
        monitor=monitor,
        schema_engine=schema_engine or SchemaEngine(),
    )
