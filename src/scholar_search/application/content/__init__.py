"""
Content Extraction - text analysis and source extraction.
"""

from .extractor import (
    ContentExtractor,
    ContentSource,
    InMemoryContentSource,
    calculate_extraction_confidence,
    combine_contents,
    placeholder_content,
)
from .text_analysis import TextAnalysis, analyze_text

__all__ = [
    "ContentExtractor",
    "ContentSource",
    "InMemoryContentSource",
    "calculate_extraction_confidence",
    "combine_contents",
    "placeholder_content",
    "TextAnalysis",
    "analyze_text",
]
