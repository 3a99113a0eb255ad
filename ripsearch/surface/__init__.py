"""Search surface: long-lived search state and its HTTP API."""

from ripsearch.surface.controller import SearchSurface, get_search_surface
from ripsearch.surface.router import router

__all__ = ["SearchSurface", "get_search_surface", "router"]
