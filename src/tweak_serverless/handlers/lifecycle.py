"""
Request lifecycle for handlers prepared by the facade.

Each invocation goes through the same steps: optional body parsing, concurrent
event/context validation, dispatch to the user handler according to the
configured `DispatchMode`, and a response. Every failure along the way ends up
in `Facade.fail`, so the completion callback is called exactly once with a
formed response.
"""

import asyncio
import functools
import inspect
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from aws_lambda_powertools.logging import Logger

from tweak_serverless.handlers.utils.observability import safe_json
from tweak_serverless.models.input import BodyParser, DispatchMode, LifecycleOptions
from tweak_serverless.models.output import Response

if TYPE_CHECKING:
    from tweak_serverless.handlers.facade import Facade

UserHandler = Callable[[Any, Any, 'CompletionCallback'], Any]


class CompletionCallback:
    """Completion callback guard: forwards the first call, ignores later ones."""

    def __init__(self, callback: Optional[Callable[..., Any]] = None, logger: Optional[Logger] = None):
        self._callback = callback
        self.logger = logger
        self.called = False
        self.error: Optional[BaseException] = None
        self.response: Any = None

    def __call__(self, error: Optional[BaseException], response: Any = None) -> Any:
        if self.called:
            if self.logger is not None:
                self.logger.warning('Completion callback called more than once, ignoring', extra={
                    'response': safe_json(response),
                })
            return None
        self.called = True
        self.error = error
        self.response = response
        if self._callback is None:
            return None
        return self._callback(error, response)


@dataclass(frozen=True)
class Invocation:
    """Validated invocation handed back in `DispatchMode.EXPECT_PROMISE` mode."""

    event: Any
    context: Any
    callback: CompletionCallback


class Lifecycle:
    """Lambda entry point wrapping a user handler."""

    def __init__(self, facade: 'Facade', handler: UserHandler, options: LifecycleOptions):
        self.facade = facade
        self.handler = handler
        self.options = options
        functools.update_wrapper(self, handler, updated=())

    @property
    def wait_for_pending(self) -> bool:
        """Whether the invocation waits for pending notifications before completing."""
        return not self.options.forced_response

    def __call__(self, event: Any, context: Any, callback: Optional[Callable[..., Any]] = None) -> Any:
        """Synchronous entry point for the Lambda runtime.

        Returns:
            The `Invocation` when an expect-promise invocation passed validation,
            otherwise the response given to the completion callback as a dict,
            failures included (None if the callback was never called)
        """
        completion = CompletionCallback(callback, self.facade.logger)
        result = asyncio.run(self._run(event, context, completion))
        if isinstance(result, Invocation):
            return result

        response = completion.response
        if isinstance(response, Response):
            return response.to_dict()
        # handlers calling the callback themselves may hand it a plain dict
        return response

    async def _run(self, event: Any, context: Any, callback: CompletionCallback) -> Optional[Invocation]:
        # asyncio.run cancels whatever is still pending when the loop closes
        try:
            return await self.invoke(event, context, callback)
        finally:
            await self.facade.drain()

    async def invoke(self, event: Any, context: Any, callback: Optional[Callable[..., Any]] = None) -> Optional[Invocation]:
        if not isinstance(callback, CompletionCallback):
            callback = CompletionCallback(callback, self.facade.logger)

        self.facade.logger.debug('Invocation started', extra={
            'request_id': getattr(context, 'aws_request_id', None),
            'dispatch': self.options.dispatch.value,
        })
        try:
            return await self._dispatch(event, context, callback)
        except Exception as err:
            self.facade.logger.error('Invocation failed', extra={'err': safe_json(err)})
            if callback.called:
                # the handler already responded, nothing left to answer
                self.facade.notify(err)
            else:
                self.facade.fail(err, {}, callback)
            return None
        finally:
            if self.wait_for_pending:
                await self.facade.drain()

    async def _dispatch(self, event: Any, context: Any, callback: CompletionCallback) -> Optional[Invocation]:
        event = self._parse_body(event)

        # both validations run, the first failure wins
        event, context = await asyncio.gather(
            self._validate(event, self.options.event_schema),
            self._validate(context, self.options.context_schema),
        )

        if self.options.dispatch is DispatchMode.EXPECT_PROMISE:
            return Invocation(event=event, context=context, callback=callback)

        result = self.handler(event, context, callback)
        if inspect.isawaitable(result):
            result = await result

        if self.options.dispatch is DispatchMode.RESPOND_AFTER:
            self.facade.respond(result, callback)
        return None

    def _parse_body(self, event: Any) -> Any:
        if self.options.body_parser is not BodyParser.JSON:
            return event
        if isinstance(event, Mapping) and isinstance(event.get('body'), str):
            return {**event, 'body': json.loads(event['body'])}
        return event

    async def _validate(self, data: Any, schema: Any) -> Any:
        if schema is None:
            return data
        return await self.facade.validate_schema(data, schema)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({getattr(self.handler, "__name__", self.handler)!r}, dispatch={self.options.dispatch.value})'
