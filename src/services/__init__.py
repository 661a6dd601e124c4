"""Services for the deep research server."""

from .deep_search import deep_search_impl, perform_deep_search

__all__ = [
    "deep_search_impl",
    "perform_deep_search",
]
