"""
Service Models Package

This package contains the Pydantic models shared by the facade and the
handler lifecycle: configuration and lifecycle inputs, response and
acknowledgment outputs.
"""

from .input import BodyParser, DispatchMode, FacadeConfig, LifecycleOptions, PackageInfo
from .output import Notice, Output, Response

__all__ = [
    # Input models
    "PackageInfo",
    "FacadeConfig",
    "DispatchMode",
    "BodyParser",
    "LifecycleOptions",

    # Output models
    "Output",
    "Response",
    "Notice",
]
