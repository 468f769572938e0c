"""Small standalone utilities."""

from .cache import Cache

__all__ = ["Cache"]
