"""
Input models for facade construction and handler lifecycle options.

This module defines the Pydantic models a handler module builds once at import
time: the package descriptor, the resolved configuration, and the options that
drive each invocation of a prepared handler.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class PackageInfo(BaseModel):
    """Descriptor of the package hosting the handlers."""

    model_config = ConfigDict(frozen=True)

    name: Annotated[str, Field(
        min_length=1,
        description='Package name, used as logger service name and log tag',
        examples=['orders-api']
    )]

    version: Annotated[str, Field(
        default='0.0.0',
        description='Package version, used as log tag and monitoring context',
        examples=['1.4.2']
    )] = '0.0.0'


class FacadeConfig(BaseModel):
    """Process-wide configuration, resolved once when the facade is created."""

    model_config = ConfigDict(frozen=True)

    environment: Annotated[str, Field(
        default='unknown',
        description='Deployment environment name',
        examples=['test', 'development', 'stage', 'production']
    )] = 'unknown'

    log_level: Annotated[str, Field(
        default='verbose',
        description='Minimum log severity (winston-style or logging level name)'
    )] = 'verbose'

    loggly: Annotated[bool, Field(
        default=False,
        description='Enable the Loggly remote log sink'
    )] = False

    loggly_token: Annotated[str, Field(
        default='',
        description='Loggly customer token, required when loggly is enabled'
    )] = ''

    loggly_subdomain: Annotated[str, Field(
        default='',
        description='Loggly account subdomain, required when loggly is enabled'
    )] = ''

    loggly_tags: Annotated[list[str], Field(
        default_factory=list,
        description='Extra tags attached to every record sent to Loggly'
    )]

    airbrake: Annotated[bool, Field(
        default=False,
        description='Enable the Airbrake monitoring sink'
    )] = False

    airbrake_project_id: Annotated[str, Field(
        default='',
        description='Airbrake project id, required when airbrake is enabled'
    )] = ''

    airbrake_project_key: Annotated[str, Field(
        default='',
        description='Airbrake project key, required when airbrake is enabled'
    )] = ''

    on_local: Annotated[bool, Field(
        default=False,
        description='Running on a developer machine (pretty console output)'
    )] = False

    extra: Annotated[dict[str, Any], Field(
        default_factory=dict,
        description='Caller supplied settings with no dedicated field'
    )]


class DispatchMode(str, Enum):
    """How a prepared handler hands control to user code."""

    # handler receives the callback and must call it itself
    DIRECT = 'direct'
    # handler returns (or awaits to) an output that is turned into the response
    RESPOND_AFTER = 'respond_after'
    # the validated invocation is returned to the caller, nothing is dispatched
    EXPECT_PROMISE = 'expect_promise'


class BodyParser(str, Enum):
    """Supported pre-parsers for string event bodies."""

    JSON = 'json'


class LifecycleOptions(BaseModel):
    """Options declared once per handler and applied to every invocation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    dispatch: Annotated[DispatchMode, Field(
        default=DispatchMode.DIRECT,
        description='Dispatch style for the user handler'
    )] = DispatchMode.DIRECT

    event_schema: Annotated[Any, Field(
        default=None,
        description='Pydantic model/type or JSON schema for the event, None skips validation'
    )] = None

    context_schema: Annotated[Any, Field(
        default=None,
        description='Pydantic model/type or JSON schema for the context, None skips validation'
    )] = None

    body_parser: Annotated[BodyParser | None, Field(
        default=None,
        description='Parse a string event body before validation'
    )] = None

    forced_response: Annotated[bool, Field(
        default=False,
        description='Complete the invocation without waiting for pending notifications'
    )] = False

    @classmethod
    def from_flags(
        cls,
        expect_promise: bool = False,
        respond_after: bool = False,
        **kwargs: Any,
    ) -> 'LifecycleOptions':
        """Build options from the boolean dispatch flags.

        ``expect_promise`` wins over ``respond_after``, which wins over the
        direct callback style.
        """
        if expect_promise:
            dispatch = DispatchMode.EXPECT_PROMISE
        elif respond_after:
            dispatch = DispatchMode.RESPOND_AFTER
        else:
            dispatch = DispatchMode.DIRECT
        return cls(dispatch=dispatch, **kwargs)
