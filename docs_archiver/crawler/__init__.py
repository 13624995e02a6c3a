"""
Crawler module for site archiving.

Contains components for crawling, rendering, extracting, downloading, and rewriting.
"""

from .crawler import SiteArchiver, ArchiveResult
from .frontier import Frontier, CrawlTarget
from .renderer import PageRenderer, HttpRenderer
from .extractor import AssetExtractor
from .downloader import ResourceStore
from .rewrite import LinkRewriter

__all__ = [
    "SiteArchiver",
    "ArchiveResult",
    "Frontier",
    "CrawlTarget",
    "PageRenderer",
    "HttpRenderer",
    "AssetExtractor",
    "ResourceStore",
    "LinkRewriter",
]
