"""
Structured data export for archived pages.
"""

from .json_extractor import NextDataExtractor, json_filename, parse_compiled_source

__all__ = [
    "NextDataExtractor",
    "json_filename",
    "parse_compiled_source",
]
