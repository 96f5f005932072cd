"""
Structured error utilities for AWS Lambda handlers.

Errors raised anywhere in a handler are normalized into a `StructuredError`,
which carries the HTTP status, the response payload and optional diagnostic
data. Named constructors are looked up through `ERROR_FACTORIES`.
"""

from collections.abc import Mapping
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Literal, Optional

from aws_lambda_powertools.event_handler.exceptions import ServiceError
from pydantic import BaseModel, Field

from tweak_serverless.models.output import Output

DEFAULT_STATUS_CODE = 400
SERVER_ERROR_MESSAGE = 'An internal server error occurred'


class ConfigurationError(ValueError):
    """Raised at startup when a required setting is missing."""


class ValidationFailure(BaseModel):
    """Diagnostic data attached to errors raised by schema validation."""

    kind: Literal['schema_validation'] = 'schema_validation'
    message: str = Field(description='Summary of the validation failure')
    details: List[Dict[str, Any]] = Field(default_factory=list, description='One entry per failed constraint')


class ErrorKind(str, Enum):
    """Named error constructors."""
    BAD_REQUEST = 'bad_request'
    UNAUTHORIZED = 'unauthorized'
    PAYMENT_REQUIRED = 'payment_required'
    FORBIDDEN = 'forbidden'
    NOT_FOUND = 'not_found'
    METHOD_NOT_ALLOWED = 'method_not_allowed'
    NOT_ACCEPTABLE = 'not_acceptable'
    REQUEST_TIMEOUT = 'request_timeout'
    CONFLICT = 'conflict'
    GONE = 'gone'
    PRECONDITION_FAILED = 'precondition_failed'
    ENTITY_TOO_LARGE = 'entity_too_large'
    UNSUPPORTED_MEDIA_TYPE = 'unsupported_media_type'
    UNPROCESSABLE_ENTITY = 'unprocessable_entity'
    TOO_MANY_REQUESTS = 'too_many_requests'
    INTERNAL = 'internal'
    NOT_IMPLEMENTED = 'not_implemented'
    BAD_GATEWAY = 'bad_gateway'
    SERVICE_UNAVAILABLE = 'service_unavailable'
    GATEWAY_TIMEOUT = 'gateway_timeout'


ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.PAYMENT_REQUIRED: 402,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.NOT_ACCEPTABLE: 406,
    ErrorKind.REQUEST_TIMEOUT: 408,
    ErrorKind.CONFLICT: 409,
    ErrorKind.GONE: 410,
    ErrorKind.PRECONDITION_FAILED: 412,
    ErrorKind.ENTITY_TOO_LARGE: 413,
    ErrorKind.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorKind.UNPROCESSABLE_ENTITY: 422,
    ErrorKind.TOO_MANY_REQUESTS: 429,
    ErrorKind.INTERNAL: 500,
    ErrorKind.NOT_IMPLEMENTED: 501,
    ErrorKind.BAD_GATEWAY: 502,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.GATEWAY_TIMEOUT: 504,
}


def _reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return 'Unknown'


class StructuredError(Exception):
    """Error carrying an HTTP status, a response payload and diagnostic data."""

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: int = DEFAULT_STATUS_CODE,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if status_code < 400:
            raise ValueError(f'status_code must be an error status, got {status_code}')
        reason = _reason_phrase(status_code)
        self.message = message or reason
        super().__init__(self.message)
        self.status_code = status_code
        self.data = data
        self.output = Output(
            status_code=status_code,
            headers=dict(headers or {}),
            payload={
                'statusCode': status_code,
                'error': reason,
                # server errors never echo their message to the client
                'message': SERVER_ERROR_MESSAGE if status_code >= 500 else self.message,
            },
        )

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> 'StructuredError':
        """Upgrade a native exception, keeping it as ``__cause__``.

        A powertools ``ServiceError`` keeps its own status code and message.
        """
        if isinstance(exc, ServiceError):
            status_code = exc.status_code
            message = message or (exc.msg if isinstance(exc.msg, str) else None)
        error = cls(
            message=message or str(exc) or type(exc).__name__,
            status_code=status_code or DEFAULT_STATUS_CODE,
            data=data if data is not None else getattr(exc, 'data', None),
            headers=headers,
        )
        error.__cause__ = exc
        return error

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(status_code={self.status_code}, message={self.message!r})'


def _factory(kind: ErrorKind) -> Callable[..., StructuredError]:
    status_code = ERROR_STATUS_CODES[kind]

    def build(message: Optional[str] = None, data: Any = None, headers: Optional[Dict[str, str]] = None) -> StructuredError:
        return StructuredError(message=message, status_code=status_code, data=data, headers=headers)

    build.__name__ = kind.value
    build.__doc__ = f'Build a {status_code} {_reason_phrase(status_code)} error.'
    return build


ERROR_FACTORIES: Dict[ErrorKind, Callable[..., StructuredError]] = {kind: _factory(kind) for kind in ErrorKind}

bad_request = ERROR_FACTORIES[ErrorKind.BAD_REQUEST]
unauthorized = ERROR_FACTORIES[ErrorKind.UNAUTHORIZED]
forbidden = ERROR_FACTORIES[ErrorKind.FORBIDDEN]
not_found = ERROR_FACTORIES[ErrorKind.NOT_FOUND]
conflict = ERROR_FACTORIES[ErrorKind.CONFLICT]
internal = ERROR_FACTORIES[ErrorKind.INTERNAL]


def create_error(kind: ErrorKind | str, *args: Any, **kwargs: Any) -> StructuredError:
    """Build a structured error through its named constructor.

    Raises:
        ValueError: If ``kind`` does not name a constructor
    """
    return ERROR_FACTORIES[ErrorKind(kind)](*args, **kwargs)


# fallback keys understood by normalize_error, camelCase as accepted by Output
FALLBACK_KEYS = {
    'statusCode': 'status_code',
    'status_code': 'status_code',
    'message': 'message',
    'data': 'data',
    'headers': 'headers',
}


def fallback_arguments(fallback: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Construction arguments for a `StructuredError` out of a fallback mapping.

    ``statusCode`` is read as ``status_code``, unknown keys are ignored.
    """
    return {FALLBACK_KEYS[key]: value for key, value in (fallback or {}).items() if key in FALLBACK_KEYS}


def normalize_error(err: Any, fallback: Optional[Mapping[str, Any]] = None) -> StructuredError:
    """Turn any failure value into a `StructuredError`.

    Strings become the message of a new error, native exceptions are upgraded
    with ``fallback`` as construction arguments, structured errors pass through.
    """
    fallback = fallback_arguments(fallback)
    if isinstance(err, StructuredError):
        return err
    if isinstance(err, str):
        return StructuredError(**{**fallback, 'message': err})
    if isinstance(err, BaseException):
        return StructuredError.from_exception(err, **fallback)
    return StructuredError(**{**fallback, 'message': repr(err)})
