"""Coordination domain API package."""

from coordination.api.routes import order_router

__all__ = ["order_router"]
