"""Service Registry Module

Name-to-handler resolution for gateway routing.
"""

from .service_registry import (
    ServiceEntry,
    ServiceRegistry,
    validate_service_name,
)

__all__ = [
    "ServiceEntry",
    "ServiceRegistry",
    "validate_service_name",
]
