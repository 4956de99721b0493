"""Stations domain API package."""

from stations.api.routes import ticket_router

__all__ = ["ticket_router"]
