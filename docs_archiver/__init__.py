"""
Docs Archiver - offline mirrors of framework-rendered documentation sites.

This package crawls a docs site, renders its pages, downloads every
resource they reference, and rewrites references to local paths.
"""

__version__ = "1.0.0"
__author__ = "Docs Archiver Team"
