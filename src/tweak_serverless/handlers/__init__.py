"""
Handler layer of tweak-serverless.

- facade: configuration, sinks, responses and the unified failure path
- lifecycle: per-invocation parsing, validation and dispatch
- models: environment variable model
- utils: errors, schema engine, logging and monitoring sinks
"""

from tweak_serverless.handlers.facade import Facade, create_facade
from tweak_serverless.handlers.lifecycle import CompletionCallback, Invocation, Lifecycle

__all__ = [
    "Facade",
    "create_facade",
    "Lifecycle",
    "Invocation",
    "CompletionCallback",
]
