"""
Unit tests for the request lifecycle of prepared handlers.
"""

import asyncio
import json
from unittest.mock import Mock

from pydantic import BaseModel

from tweak_serverless import (
    CompletionCallback,
    DispatchMode,
    Invocation,
    Lifecycle,
    LifecycleOptions,
    Output,
    create_error,
)


class OrderEvent(BaseModel):
    id: int


class InvocationContext(BaseModel):
    aws_request_id: str


ORDER_JSON_SCHEMA = {
    "type": "object",
    "properties": {"id": {"type": "integer"}},
    "required": ["id"],
}


def _response(callback: Mock):
    callback.assert_called_once()
    error, response = callback.call_args[0]
    assert error is None
    return response


class TestPrepare:
    """Test cases for building lifecycles."""

    def test_prepare_with_fields(self, facade):
        def handler(event, context, callback):
            """Create an order."""

        lifecycle = facade.prepare(handler, dispatch="respond_after", body_parser="json")

        assert isinstance(lifecycle, Lifecycle)
        assert lifecycle.options.dispatch is DispatchMode.RESPOND_AFTER
        assert lifecycle.__name__ == "handler"
        assert lifecycle.__doc__ == "Create an order."

    def test_prepare_with_options(self, facade):
        options = LifecycleOptions.from_flags(expect_promise=True, respond_after=True)

        lifecycle = facade.prepare(Mock(), options, forced_response=True)

        assert lifecycle.options.dispatch is DispatchMode.EXPECT_PROMISE
        assert lifecycle.options.forced_response is True
        assert lifecycle.wait_for_pending is False

    def test_decorator(self, facade):
        @facade.handler(event_schema=OrderEvent)
        def lambda_handler(event, context, callback):
            return None

        assert isinstance(lambda_handler, Lifecycle)
        assert lambda_handler.options.event_schema is OrderEvent


class TestBodyParsing:
    """Test cases for the JSON body parser."""

    def test_json_body_is_parsed(self, facade, lambda_context, callback):
        received = []

        def handler(event, context, callback):
            received.append(event)
            return {"payload": "ok"}

        lifecycle = facade.prepare(handler, dispatch=DispatchMode.RESPOND_AFTER, body_parser="json")
        event = {"body": '{"a":1}'}

        lifecycle(event, lambda_context, callback)

        assert received[0]["body"] == {"a": 1}
        assert event["body"] == '{"a":1}'
        assert _response(callback).status_code == 200

    def test_api_gateway_event(self, facade, api_gateway_event, lambda_context):
        received = []
        lifecycle = facade.prepare(
            lambda event, context, callback: received.append(event["body"]),
            dispatch=DispatchMode.RESPOND_AFTER,
            body_parser="json",
        )

        lifecycle(api_gateway_event, lambda_context)

        assert received == [{"customer_name": "Test User", "order_item_count": 2}]

    def test_non_string_body_is_left_alone(self, facade, lambda_context, callback):
        received = []
        lifecycle = facade.prepare(
            lambda event, context, callback: received.append(event["body"]),
            dispatch=DispatchMode.RESPOND_AFTER,
            body_parser="json",
        )

        lifecycle({"body": {"a": 1}}, lambda_context, callback)

        assert received == [{"a": 1}]

    def test_body_is_not_parsed_without_parser(self, facade, lambda_context, callback):
        received = []
        lifecycle = facade.prepare(
            lambda event, context, callback: received.append(event["body"]),
            dispatch=DispatchMode.RESPOND_AFTER,
        )

        lifecycle({"body": '{"a":1}'}, lambda_context, callback)

        assert received == ['{"a":1}']

    def test_invalid_json_body_fails(self, facade, lambda_context, callback, monitor):
        handler = Mock()
        lifecycle = facade.prepare(handler, dispatch=DispatchMode.RESPOND_AFTER, body_parser="json")

        lifecycle({"body": "{oops"}, lambda_context, callback)

        handler.assert_not_called()
        assert _response(callback).status_code == 400
        assert len(monitor.errors) == 1


class TestValidation:
    """Test cases for event and context validation."""

    def test_validated_values_reach_the_handler(self, facade, lambda_context, callback):
        received = []

        def handler(event, context, callback):
            received.append((event, context))
            return {"payload": {"id": event.id}}

        lifecycle = facade.prepare(
            handler,
            dispatch=DispatchMode.RESPOND_AFTER,
            event_schema=OrderEvent,
            context_schema=InvocationContext,
        )

        lifecycle({"id": "5"}, lambda_context, callback)

        event, context = received[0]
        assert event == OrderEvent(id=5)
        assert context == InvocationContext(aws_request_id="test-request-id-123")
        assert _response(callback).body == '{"id": 5}'

    def test_invalid_event_never_dispatches(self, facade, lambda_context, callback, monitor):
        handler = Mock()
        lifecycle = facade.prepare(handler, event_schema=OrderEvent, context_schema=InvocationContext)

        lifecycle({"id": "x"}, lambda_context, callback)

        handler.assert_not_called()
        response = _response(callback)
        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["data"][0]["loc"] == ["id"]
        assert len(monitor.errors) == 1

    def test_invalid_event_in_production(self, production_facade, lambda_context, callback):
        lifecycle = production_facade.prepare(Mock(), event_schema=OrderEvent)

        lifecycle({"id": "x"}, lambda_context, callback)

        response = _response(callback)
        assert response.status_code == 400
        assert "data" not in json.loads(response.body)

    def test_invalid_context(self, facade, callback):
        handler = Mock()
        context = Mock(spec=[])
        lifecycle = facade.prepare(handler, context_schema=InvocationContext)

        lifecycle({"id": 1}, context, callback)

        handler.assert_not_called()
        assert _response(callback).status_code == 400

    def test_json_schema(self, facade, lambda_context, callback):
        handler = Mock()
        lifecycle = facade.prepare(handler, event_schema=ORDER_JSON_SCHEMA)

        lifecycle({"id": "seven"}, lambda_context, callback)

        handler.assert_not_called()
        assert _response(callback).status_code == 400

    def test_errors_are_logged(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(Mock(), event_schema=OrderEvent)

        lifecycle({"id": "x"}, lambda_context, callback)

        facade.logger.error.assert_called_once()
        assert facade.logger.error.call_args[0][0] == "Invocation failed"


class TestExpectPromise:
    """Test cases for the expect-promise dispatch mode."""

    def test_returns_invocation(self, facade, lambda_context, callback):
        handler = Mock()
        lifecycle = facade.prepare(handler, dispatch=DispatchMode.EXPECT_PROMISE, event_schema=OrderEvent)

        invocation = lifecycle({"id": 3}, lambda_context, callback)

        assert isinstance(invocation, Invocation)
        assert invocation.event == OrderEvent(id=3)
        assert invocation.context is lambda_context
        handler.assert_not_called()
        callback.assert_not_called()

    def test_caller_completes_the_invocation(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(Mock(), dispatch=DispatchMode.EXPECT_PROMISE)

        invocation = lifecycle({"id": 3}, lambda_context, callback)
        facade.respond({"payload": {"id": invocation.event["id"]}}, invocation.callback)

        assert _response(callback).body == '{"id": 3}'

    def test_invalid_event_fails(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(Mock(), dispatch=DispatchMode.EXPECT_PROMISE, event_schema=OrderEvent)

        result = lifecycle({"id": "x"}, lambda_context, callback)

        assert result["statusCode"] == 400
        assert _response(callback).status_code == 400

    def test_async_usage(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(Mock(), dispatch=DispatchMode.EXPECT_PROMISE, event_schema=OrderEvent)

        invocation = asyncio.run(lifecycle.invoke({"id": "9"}, lambda_context, callback))

        assert invocation.event.id == 9
        assert isinstance(invocation.callback, CompletionCallback)


class TestRespondAfter:
    """Test cases for the respond-after dispatch mode."""

    def test_sync_handler(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(
            lambda event, context, callback: Output(status_code=201, payload={"id": 1}),
            dispatch=DispatchMode.RESPOND_AFTER,
        )

        result = lifecycle({}, lambda_context, callback)

        assert result == {"statusCode": 201, "headers": {}, "body": '{"id": 1}'}
        assert _response(callback).status_code == 201

    def test_async_handler(self, facade, lambda_context, callback):
        async def handler(event, context, callback):
            await asyncio.sleep(0)
            return {"statusCode": 200, "headers": {"X-Order": "1"}, "payload": "done"}

        lifecycle = facade.prepare(handler, dispatch=DispatchMode.RESPOND_AFTER)

        result = lifecycle({}, lambda_context, callback)

        assert result == {"statusCode": 200, "headers": {"X-Order": "1"}, "body": "done"}

    def test_handler_error(self, facade, lambda_context, callback, monitor):
        error = ValueError("quantity must be positive")

        async def handler(event, context, callback):
            raise error

        lifecycle = facade.prepare(handler, dispatch=DispatchMode.RESPOND_AFTER)

        lifecycle({}, lambda_context, callback)

        response = _response(callback)
        assert response.status_code == 400
        assert json.loads(response.body)["message"] == "quantity must be positive"
        assert monitor.errors == [error]

    def test_handler_structured_error(self, facade, lambda_context, callback):
        def handler(event, context, callback):
            raise create_error("not_found", "order 3 not found")

        lifecycle = facade.prepare(handler, dispatch=DispatchMode.RESPOND_AFTER)

        lifecycle({}, lambda_context, callback)

        assert _response(callback).status_code == 404

    def test_numeric_header_values(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(
            lambda event, context, callback: {"headers": {"Content-Length": 12}, "payload": "twelve bytes"},
            dispatch=DispatchMode.RESPOND_AFTER,
        )

        result = lifecycle({}, lambda_context, callback)

        assert result["statusCode"] == 200
        assert result["headers"] == {"Content-Length": "12"}

    def test_unserializable_output_fails(self, facade, lambda_context, callback):
        lifecycle = facade.prepare(lambda event, context, callback: {"payload": object()}, dispatch="respond_after")

        lifecycle({}, lambda_context, callback)

        assert _response(callback).status_code == 400


class TestDirect:
    """Test cases for the direct (callback) dispatch mode."""

    def test_handler_calls_callback(self, facade, lambda_context, callback):
        def handler(event, context, callback):
            facade.respond({"payload": {"ok": True}}, callback)

        result = facade.prepare(handler)({}, lambda_context, callback)

        assert result == {"statusCode": 200, "headers": {}, "body": '{"ok": true}'}
        assert _response(callback).status_code == 200

    def test_async_handler_is_run(self, facade, lambda_context, callback):
        async def handler(event, context, callback):
            await asyncio.sleep(0)
            facade.fail_with("forbidden", callback=callback)

        facade.prepare(handler)({}, lambda_context, callback)

        assert _response(callback).status_code == 403

    def test_return_value_is_ignored(self, facade, lambda_context, callback):
        result = facade.prepare(lambda event, context, callback: {"payload": "ignored"})({}, lambda_context, callback)

        assert result is None
        callback.assert_not_called()

    def test_error_before_responding(self, facade, lambda_context, callback):
        def handler(event, context, callback):
            raise RuntimeError("boom")

        facade.prepare(handler)({}, lambda_context, callback)

        assert _response(callback).status_code == 400

    def test_error_after_responding(self, facade, lambda_context, callback, monitor):
        def handler(event, context, callback):
            facade.respond({"payload": "ok"}, callback)
            raise RuntimeError("cleanup failed")

        facade.prepare(handler)({}, lambda_context, callback)

        assert _response(callback).body == "ok"
        assert len(monitor.errors) == 1

    def test_handler_passes_plain_dict_to_callback(self, facade, lambda_context, callback):
        response = {"statusCode": 200, "headers": {}, "body": "ok"}

        def handler(event, context, callback):
            callback(None, response)

        result = facade.prepare(handler)({}, lambda_context, callback)

        assert result == response
        callback.assert_called_once_with(None, response)

    def test_callback_is_called_once(self, facade, lambda_context, callback):
        def handler(event, context, callback):
            facade.respond({"payload": "first"}, callback)
            facade.respond({"payload": "second"}, callback)

        result = facade.prepare(handler)({}, lambda_context, callback)

        assert _response(callback).body == "first"
        assert result["body"] == "first"
        facade.logger.warning.assert_called_once()


class TestPendingNotifications:
    """Test cases for waiting on monitoring notifications."""

    def test_waits_by_default(self, facade, lambda_context, callback, monitor):
        lifecycle = facade.prepare(Mock(), event_schema=OrderEvent)

        async def scenario():
            await lifecycle.invoke({"id": "x"}, lambda_context, callback)
            assert len(monitor.errors) == 1

        asyncio.run(scenario())

    def test_forced_response_does_not_wait(self, facade, lambda_context, callback, monitor):
        lifecycle = facade.prepare(Mock(), event_schema=OrderEvent, forced_response=True)

        async def scenario():
            await lifecycle.invoke({"id": "x"}, lambda_context, callback)
            assert _response(callback).status_code == 400
            assert monitor.errors == []
            await facade.drain()
            assert len(monitor.errors) == 1

        asyncio.run(scenario())

    def test_sync_entry_point_still_reports(self, facade, lambda_context, callback, monitor):
        lifecycle = facade.prepare(Mock(), event_schema=OrderEvent, forced_response=True)

        lifecycle({"id": "x"}, lambda_context, callback)

        assert len(monitor.errors) == 1

    def test_monitoring_failure_does_not_change_response(self, make_facade, failing_monitor, lambda_context, callback):
        facade = make_facade(monitor=failing_monitor)
        lifecycle = facade.prepare(Mock(), event_schema=OrderEvent)

        lifecycle({"id": "x"}, lambda_context, callback)

        assert _response(callback).status_code == 400
        assert len(failing_monitor.errors) == 1
