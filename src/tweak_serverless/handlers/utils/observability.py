"""
Centralized logging utilities for handlers built with the facade.

The console sink is an AWS Lambda Powertools logger (structured JSON output).
When enabled, records are additionally shipped to Loggly over HTTP.
"""

import json
import logging
from functools import partial
from typing import IO, Any, Iterable, Optional

import httpx
from aws_lambda_powertools.logging import Logger
from pydantic_core import to_jsonable_python

LOGGLY_INPUTS_URL = 'https://logs-01.loggly.com/inputs/{token}/tag/{tags}/'
LIBRARY_TAG = 'tweak-serverless'

# winston level names on top of the logging module ones
LOG_LEVELS = {
    'silly': logging.DEBUG,
    'debug': logging.DEBUG,
    'verbose': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}


def resolve_log_level(level: str | int) -> int:
    """Map a configured level name onto a `logging` level."""
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f'unknown log level {level!r}') from None


def safe_json(value: Any) -> Any:
    """JSON-safe copy of ``value`` for log metadata."""
    if not value:
        return value
    return to_jsonable_python(value, fallback=repr)


def build_tags(tags: Iterable[str], environment: str, name: str, version: str) -> list[str]:
    """Loggly tags: configured ones plus environment and package identity, deduplicated."""
    merged = [tag for tag in tags if tag]
    merged.extend([environment, LIBRARY_TAG, name, version])
    return list(dict.fromkeys(merged))


class LogglyHandler(logging.Handler):
    """Ship each formatted record to the Loggly HTTP inputs endpoint."""

    def __init__(
        self,
        token: str,
        subdomain: str,
        tags: Iterable[str] = (),
        client: Optional[httpx.Client] = None,
        level: int = logging.NOTSET,
    ):
        super().__init__(level=level)
        self.token = token
        self.subdomain = subdomain
        self.tags = list(tags)
        self.client = client or httpx.Client(timeout=5.0)

    @property
    def url(self) -> str:
        return LOGGLY_INPUTS_URL.format(token=self.token, tags=','.join(self.tags) or 'http')

    def emit(self, record: logging.LogRecord) -> None:
        try:
            response = self.client.post(
                self.url,
                content=self.format(record),
                headers={'Content-Type': 'application/json'},
            )
            response.raise_for_status()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self.client.close()
        super().close()

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.subdomain} ({logging.getLevelName(self.level)})>'


def create_logger(
    service: str,
    level: str | int = 'verbose',
    pretty: bool = False,
    stream: Optional[IO[str]] = None,
) -> Logger:
    """Console logger for a service; ``pretty`` indents the JSON output."""
    kwargs: dict[str, Any] = {}
    if pretty:
        kwargs['json_serializer'] = partial(json.dumps, indent=2, default=str)
    if stream is not None:
        kwargs['stream'] = stream
    return Logger(service=service, level=resolve_log_level(level), **kwargs)


def add_loggly_handler(logger: Logger, handler: LogglyHandler) -> LogglyHandler:
    """Attach ``handler`` to ``logger`` using the logger's own JSON formatter."""
    handler.setFormatter(logger.registered_formatter)
    handler.setLevel(logger.log_level)
    logger.addHandler(handler)
    return handler
