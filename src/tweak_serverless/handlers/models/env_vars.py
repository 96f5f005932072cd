"""
Environment variable models for type-safe configuration.

This module defines the Pydantic model for the environment variables read when
a facade is created. Values passed explicitly to `create_facade` take
precedence over these.
"""

from typing import Annotated

from aws_lambda_env_modeler import BaseModel, get_environment_variables
from pydantic import AliasChoices, Field


class FacadeEnvVars(BaseModel):
    """Environment variables consumed by the facade."""

    # Environment name (test, development, stage, production), NODE_ENV wins over ENVIRONMENT
    ENVIRONMENT: Annotated[str, Field(
        default='unknown',
        validation_alias=AliasChoices('NODE_ENV', 'ENVIRONMENT'),
        description='Deployment environment name'
    )] = 'unknown'

    # Minimum log severity
    LOG_LEVEL: Annotated[str, Field(
        default='verbose',
        description='Log level, winston-style names are accepted'
    )] = 'verbose'

    # Loggly remote sink
    LOGGLY: Annotated[bool, Field(
        default=False,
        description='Enable the Loggly remote log sink (true/false)'
    )] = False

    LOGGLY_TOKEN: Annotated[str, Field(
        default='',
        description='Loggly customer token'
    )] = ''

    LOGGLY_SUBDOMAIN: Annotated[str, Field(
        default='',
        description='Loggly account subdomain'
    )] = ''

    LOGGLY_TAGS: Annotated[str, Field(
        default='',
        description='Comma separated Loggly tags'
    )] = ''

    # Airbrake monitoring sink
    AIRBRAKE: Annotated[bool, Field(
        default=False,
        description='Enable Airbrake error notifications (true/false)'
    )] = False

    AIRBRAKE_PROJECT_ID: Annotated[str, Field(
        default='',
        description='Airbrake project id'
    )] = ''

    AIRBRAKE_PROJECT_KEY: Annotated[str, Field(
        default='',
        description='Airbrake project key'
    )] = ''

    # Developer machine
    ON_LOCAL: Annotated[bool, Field(
        default=False,
        description='Pretty print console logs (true/false)'
    )] = False

    @property
    def loggly_tags(self) -> list[str]:
        """Configured Loggly tags, empty entries dropped."""
        return [tag for tag in self.LOGGLY_TAGS.split(',') if tag]


def get_facade_env_vars() -> FacadeEnvVars:
    """
    Get typed environment variables for the facade.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=FacadeEnvVars)
