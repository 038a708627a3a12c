from importlib.metadata import version

from .chain import Chain, compose
from .cors import CORSPolicy
from .errors import ChainError, ErrorKind, Trace, find, origin_of, traces, wrap
from .pattern import RouteConfigError, compile_pattern
from .responses import ContentType, Response, Status, respond
from .router import (
    EndpointHandle,
    Request,
    Router,
    cors_headers,
    fail_fast,
    resolved_variables,
)

__all__ = [
    "CORSPolicy",
    "Chain",
    "ChainError",
    "ContentType",
    "EndpointHandle",
    "ErrorKind",
    "Request",
    "Response",
    "RouteConfigError",
    "Router",
    "Status",
    "Trace",
    "__version__",
    "compile_pattern",
    "compose",
    "cors_headers",
    "fail_fast",
    "find",
    "origin_of",
    "resolved_variables",
    "respond",
    "traces",
    "wrap",
]

__version__ = version("restmux")
