"""HTTP client base."""

from .base_client import BaseAPIClient

__all__ = ["BaseAPIClient"]
