"""HTTP status server for knbn boards."""

from .api import create_app

__all__ = ["create_app"]
