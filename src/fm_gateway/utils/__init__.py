"""Utility Functions"""

from fm_gateway.utils.resilience import (
    create_gateway_retry,
    gateway_retry,
    handle_with_retry,
    is_retryable,
)

__all__ = [
    "create_gateway_retry",
    "gateway_retry",
    "handle_with_retry",
    "is_retryable",
]
