"""
Scholar index client and result-page parser.
"""

from .client import (
    DEFAULT_BASE_URL,
    ScholarClient,
    ScholarClientConfig,
    ScholarSearchOptions,
    is_error_page,
)
from .parser import ScholarResultParser, has_no_results, parse_byline

__all__ = [
    "DEFAULT_BASE_URL",
    "ScholarClient",
    "ScholarClientConfig",
    "ScholarSearchOptions",
    "ScholarResultParser",
    "has_no_results",
    "is_error_page",
    "parse_byline",
]
