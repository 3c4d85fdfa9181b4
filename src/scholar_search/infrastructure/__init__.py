"""
Infrastructure - HTTP clients for the external scholarly index.
"""

from .http import BaseAPIClient
from .scholar import ScholarClient, ScholarClientConfig, ScholarResultParser, ScholarSearchOptions

__all__ = [
    "BaseAPIClient",
    "ScholarClient",
    "ScholarClientConfig",
    "ScholarResultParser",
    "ScholarSearchOptions",
]
