"""Service handler capability and built-in handler adapters."""

from fm_gateway.handlers.base import FunctionHandler, ServiceHandler, as_handler
from fm_gateway.handlers.http import HttpServiceHandler

__all__ = [
    "ServiceHandler",
    "FunctionHandler",
    "HttpServiceHandler",
    "as_handler",
]
