"""Exact-name request routing."""

from fm_gateway.routing.router import Router, direct_invoke

__all__ = [
    "Router",
    "direct_invoke",
]
