"""
Output models for handler responses and sink acknowledgments using Pydantic.

`Output` is what handler code (and structured errors) produce, `Response` is
the API Gateway proxy shape handed to the completion callback.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

# numeric header values (Content-Length and the like) are sent as strings
HeaderValue = Annotated[str, BeforeValidator(str)]


class Output(BaseModel):
    """Handler output before serialization."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: Annotated[int, Field(
        default=200,
        alias='statusCode',
        description='HTTP status code of the response',
        examples=[200, 201, 400]
    )] = 200

    headers: Annotated[dict[str, HeaderValue], Field(
        default_factory=dict,
        description='HTTP response headers'
    )]

    payload: Annotated[Any, Field(
        default=None,
        description='Response payload, sent verbatim when it is a string, JSON encoded otherwise'
    )] = None


class Response(BaseModel):
    """Response delivered to the completion callback."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status_code: Annotated[int, Field(
        alias='statusCode',
        description='HTTP status code of the response'
    )]

    headers: Annotated[dict[str, HeaderValue], Field(
        default_factory=dict,
        description='HTTP response headers'
    )]

    body: Annotated[str, Field(
        description='Serialized response body'
    )]

    def to_dict(self) -> dict[str, Any]:
        """API Gateway proxy integration dict."""
        return self.model_dump(by_alias=True)


class Notice(BaseModel):
    """Acknowledgment returned by a monitoring sink."""

    id: Annotated[str, Field(
        description='Notice identifier assigned by the monitoring service',
        examples=['faked', '3b6b9c1a-0d9f-4e4e-8d3c-2f6a6b3b1c1d']
    )]

    url: Annotated[str | None, Field(
        default=None,
        description='Link to the notice in the monitoring service'
    )] = None
