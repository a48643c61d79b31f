"""HTTP surface for the price service."""

from quotecache.api.app import create_app

__all__ = ["create_app"]
